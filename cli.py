"""CLI entry point - wrapper for running from a source checkout

Equivalent to the ``codex-oauth`` console script.
"""

from cli.main import main

if __name__ == "__main__":
    main()
