"""Tests for CLI status rendering."""

import datetime
import io

from rich.console import Console

from cli.status_display import format_time_remaining, get_auth_status, show_auth_status
from codex_oauth import AuthErrorKind, AuthState
from fakes import make_credential


NOW = datetime.datetime(2030, 1, 1, tzinfo=datetime.timezone.utc)


class TestFormatTimeRemaining:
    def test_minutes(self):
        assert format_time_remaining(NOW + datetime.timedelta(minutes=5, seconds=30), NOW) == "5m"

    def test_hours(self):
        assert format_time_remaining(NOW + datetime.timedelta(hours=3, minutes=4), NOW) == "3h 4m"

    def test_days(self):
        assert format_time_remaining(NOW + datetime.timedelta(days=1, hours=2), NOW) == "1d 2h"

    def test_expired(self):
        assert format_time_remaining(NOW - datetime.timedelta(seconds=1), NOW) == "expired"


class TestGetAuthStatus:
    def test_not_logged_in(self):
        assert get_auth_status(AuthState(is_authenticated=False))[0] == "NO AUTH"

    def test_valid(self):
        state = AuthState(is_authenticated=True, credentials=make_credential(expires_in=3600))
        status, detail = get_auth_status(state)
        assert status == "VALID"
        assert detail.startswith("Expires in")

    def test_expired(self):
        state = AuthState(is_authenticated=True, credentials=make_credential(expires_in=-60))
        assert get_auth_status(state)[0] == "EXPIRED"

    def test_refresh_failure_requires_reauthentication(self):
        state = AuthState(
            is_authenticated=True,
            credentials=make_credential(expires_in=-60),
            error="Failed to refresh token, authentication required.",
            error_kind=AuthErrorKind.REFRESH_FAILED,
        )
        status, detail = get_auth_status(state)
        assert status == "REAUTH REQUIRED"
        assert "authentication required" in detail


class TestShowAuthStatus:
    def test_renders_account_and_file(self):
        buffer = io.StringIO()
        console = Console(file=buffer, width=120, force_terminal=False)
        state = AuthState(is_authenticated=True, credentials=make_credential(account_id="acct_show"))

        show_auth_status(state, console, token_file="/tmp/credentials.json")

        output = buffer.getvalue()
        assert "ChatGPT Codex Status" in output
        assert "acct_show" in output
        assert "/tmp/credentials.json" in output
        assert "VALID" in output
