"""CLI entry point and argument parsing"""

import sys
import argparse
from rich.console import Console

import settings
from cli import auth_handlers
from cli.cli_app import CodexAuthCLI
from cli.status_display import show_auth_status


console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ChatGPT Codex OAuth login and token manager")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")

    actions = parser.add_mutually_exclusive_group()
    actions.add_argument("--login", action="store_true", help="Log in with ChatGPT and exit")
    actions.add_argument("--status", action="store_true", help="Show authentication status and exit")
    actions.add_argument("--logout", action="store_true", help="Clear stored credentials and exit")
    actions.add_argument(
        "--print-token",
        action="store_true",
        help="Print a valid access token to stdout (refreshing it if needed)"
    )

    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Print the login URL instead of opening a browser"
    )
    return parser


def run_command(cli: CodexAuthCLI, args: argparse.Namespace) -> int:
    """Run a one-shot command and return the process exit code"""
    if args.login:
        ok = auth_handlers.login(cli.service, cli.loop, cli.console, not args.no_browser)
    elif args.status:
        show_auth_status(cli.service.get_auth_state(), cli.console, settings.CODEX_TOKEN_FILE)
        ok = cli.service.is_authenticated()
    elif args.logout:
        auth_handlers.logout(cli.service, cli.loop, cli.console)
        ok = True
    else:
        ok = auth_handlers.print_token(cli.service, cli.loop, cli.console)
    return 0 if ok else 1


def main(argv=None):
    """Entry point for the CLI"""
    parser = build_parser()
    args = parser.parse_args(argv)

    exit_code = 0
    try:
        cli = CodexAuthCLI(debug=args.debug, launch_browser=not args.no_browser)

        if args.login or args.status or args.logout or args.print_token:
            try:
                exit_code = run_command(cli, args)
            finally:
                cli.close()
        else:
            cli.run()

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        console.print("Goodbye!")
        exit_code = 130

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
