"""CLI package for ChatGPT Codex authentication

This package provides the command-line interface for logging in with a
ChatGPT subscription and managing the stored credentials.
"""

from cli.cli_app import CodexAuthCLI
from cli.main import main

__all__ = [
    "CodexAuthCLI",
    "main",
]
