"""Error taxonomy for the Codex OAuth flow"""

from enum import Enum
from typing import Optional


class AuthErrorKind(str, Enum):
    """Why a login attempt or a refresh did not produce a usable credential"""

    PORT_IN_USE = "port_in_use"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"
    STATE_MISMATCH = "state_mismatch"
    MISSING_CODE = "missing_code"
    EXCHANGE_FAILED = "exchange_failed"
    NO_ACCOUNT_ID = "no_account_id"
    REFRESH_FAILED = "refresh_failed"
    ACCOUNT_MISMATCH = "account_mismatch"
    NETWORK_ERROR = "network_error"


ERROR_MESSAGES = {
    AuthErrorKind.PORT_IN_USE: (
        "OAuth callback port is already in use. Another login may be in progress; "
        "close it (or the process holding the port) and try again."
    ),
    AuthErrorKind.CANCELLED: "Authentication was cancelled.",
    AuthErrorKind.TIMEOUT: (
        "Timed out waiting for the browser to complete login. Run login again "
        "and finish the authorization in the opened page."
    ),
    AuthErrorKind.STATE_MISMATCH: "OAuth state mismatch - possible CSRF attack. Login was rejected.",
    AuthErrorKind.MISSING_CODE: "Missing authorization code in the OAuth callback.",
    AuthErrorKind.EXCHANGE_FAILED: "Failed to exchange the authorization code for tokens.",
    AuthErrorKind.NO_ACCOUNT_ID: "Failed to extract accountId from token.",
    AuthErrorKind.REFRESH_FAILED: "Failed to refresh token, authentication required.",
    AuthErrorKind.ACCOUNT_MISMATCH: (
        "Refreshed token belongs to a different ChatGPT account. Please log in again."
    ),
    AuthErrorKind.NETWORK_ERROR: "Network error while contacting the OAuth server. Check connection and retry.",
}


def error_message(kind: AuthErrorKind) -> str:
    """Human readable message for an error kind"""
    return ERROR_MESSAGES[kind]


class CodexOAuthError(Exception):
    """Base class for Codex OAuth errors"""

    kind: Optional[AuthErrorKind] = None

    def __init__(self, message: Optional[str] = None, kind: Optional[AuthErrorKind] = None):
        if kind is not None:
            self.kind = kind
        if message is None and self.kind is not None:
            message = error_message(self.kind)
        super().__init__(message or "Codex OAuth error")


class PortInUseError(CodexOAuthError):
    kind = AuthErrorKind.PORT_IN_USE


class NoAccountIdError(CodexOAuthError):
    kind = AuthErrorKind.NO_ACCOUNT_ID


class NotAuthenticatedError(CodexOAuthError):
    """No credential is held; the user has never logged in (or logged out)"""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Not authenticated with ChatGPT. Please log in first.")


class RefreshFailedError(CodexOAuthError):
    """The refresh grant was denied; the user must go through login again"""

    kind = AuthErrorKind.REFRESH_FAILED


class AccountMismatchError(RefreshFailedError):
    kind = AuthErrorKind.ACCOUNT_MISMATCH

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__()
