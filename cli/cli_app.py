"""Main CLI application class for ChatGPT Codex authentication"""

import asyncio
from typing import Optional

from rich.panel import Panel
from rich.prompt import Prompt, Confirm
from rich.table import Table

import settings
from codex_oauth import CodexOAuthService, get_codex_oauth_service
from cli import auth_handlers
from cli.debug_setup import setup_debug_console
from cli.status_display import get_auth_status, show_auth_status


class CodexAuthCLI:
    """Interactive interface for managing ChatGPT Codex credentials"""

    def __init__(
        self,
        debug: bool = False,
        launch_browser: bool = True,
        service: Optional[CodexOAuthService] = None,
    ):
        self.debug = debug
        self.launch_browser = launch_browser

        # Configure debug console
        self.console = setup_debug_console(debug)
        if debug:
            self.console.print(
                f"[yellow]Debug mode enabled - verbose logging will be written to {settings.DEBUG_LOG_FILE}[/yellow]"
            )

        self.service = service or get_codex_oauth_service()

        # Create event loop
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)

    def clear_screen(self):
        """Clear the terminal screen"""
        self.console.clear()

    def display_header(self):
        """Display application header"""
        self.console.print("\n")
        self.console.print(Panel.fit(
            "[bold cyan]ChatGPT Codex Login[/bold cyan]\n"
            "[dim]Use a ChatGPT Plus/Pro subscription instead of an API key[/dim]",
            border_style="cyan"
        ))

    def display_status(self):
        """Display a one-line authentication summary"""
        state = self.service.get_auth_state()
        status, detail = get_auth_status(state, settings.TOKEN_REFRESH_MARGIN)

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="cyan", width=20)
        table.add_column()

        style = {"VALID": "green", "EXPIRED": "yellow"}.get(status, "red")
        table.add_row("Auth Status:", f"[{style}]{status}[/{style}] [dim]{detail}[/dim]")
        if state.account_id:
            table.add_row("Account ID:", f"[dim]{state.account_id}[/dim]")

        self.console.print(table)
        self.console.print()

    def display_menu(self):
        """Display main menu options"""
        authenticated = self.service.get_auth_state().is_authenticated

        self.console.print("[bold]Main Menu:[/bold]")
        self.console.print()

        if authenticated:
            self.console.print("  [cyan]1[/cyan]. Re-authenticate (logout and login)")
        else:
            self.console.print("  [cyan]1[/cyan]. Login with ChatGPT")
        self.console.print("  [cyan]2[/cyan]. Show detailed status")
        if authenticated:
            self.console.print("  [cyan]3[/cyan]. Refresh token now")
            self.console.print("  [cyan]4[/cyan]. Logout")
        else:
            self.console.print("  [dim]3. Refresh token now (requires login)[/dim]")
            self.console.print("  [dim]4. Logout[/dim]")
        self.console.print("  [cyan]5[/cyan]. Exit")
        self.console.print()

    def login(self) -> bool:
        """Run the browser login, logging out first when already authenticated"""
        if self.service.get_auth_state().is_authenticated:
            if not Confirm.ask("Logout and re-authenticate?"):
                return False
            self.loop.run_until_complete(self.service.logout())
        return auth_handlers.login(self.service, self.loop, self.console, self.launch_browser)

    def show_status(self):
        """Print the detailed status table"""
        show_auth_status(self.service.get_auth_state(), self.console, settings.CODEX_TOKEN_FILE)

    def refresh(self) -> bool:
        return auth_handlers.refresh_token(self.service, self.loop, self.console)

    def logout(self) -> bool:
        if not Confirm.ask("Clear stored ChatGPT credentials?"):
            return False
        return auth_handlers.logout(self.service, self.loop, self.console)

    def close(self):
        """Release the callback server and the event loop"""
        if self.loop.is_closed():
            return
        self.loop.run_until_complete(self.service.close())
        self.loop.close()

    def run(self):
        """Main CLI loop"""
        try:
            while True:
                self.clear_screen()
                self.display_header()
                self.display_status()
                self.display_menu()

                choice = Prompt.ask("Select option", choices=["1", "2", "3", "4", "5"])

                if choice == "1":
                    self.login()
                elif choice == "2":
                    self.show_status()
                elif choice == "3":
                    self.refresh()
                elif choice == "4":
                    self.logout()
                elif choice == "5":
                    self.console.print("\n[cyan]Goodbye![/cyan]\n")
                    break

                input("\nPress Enter to continue...")
        finally:
            self.close()
