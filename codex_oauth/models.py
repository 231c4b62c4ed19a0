"""Data models for ChatGPT (Codex) OAuth authentication"""

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, NamedTuple, Optional, Union

from .errors import AuthErrorKind


def utcnow() -> datetime.datetime:
    """Current time as a timezone-aware UTC datetime"""
    return datetime.datetime.now(datetime.timezone.utc)


def _parse_timestamp(value: str) -> datetime.datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


class PKCEPair(NamedTuple):
    """PKCE code verifier and challenge pair"""
    verifier: str
    challenge: str


class AuthorizationFlow(NamedTuple):
    """OAuth authorization flow data"""
    pkce: PKCEPair
    state: str
    url: str


class CallbackResult(NamedTuple):
    """Authorization code captured by the callback server"""
    code: str


@dataclass(frozen=True)
class TokenSuccess:
    """Token endpoint returned a usable token pair

    Attributes:
        access: Access token (JWT)
        refresh: Refresh token
        expires: Absolute expiry, derived from ``expires_in`` when received
    """
    access: str
    refresh: str
    expires: datetime.datetime
    type: Literal["success"] = "success"


@dataclass(frozen=True)
class TokenFailure:
    """Token endpoint rejected the grant or returned an unusable body"""
    type: Literal["failed"] = "failed"


TokenResult = Union[TokenSuccess, TokenFailure]


@dataclass
class Credential:
    """Persisted ChatGPT OAuth credential

    Attributes:
        access_token: Bearer token for API authentication
        refresh_token: Token for refreshing expired access tokens
        expires_at: When the access token expires (UTC)
        account_id: ChatGPT account identifier taken from the access token claims
        last_refresh: When the token pair was last obtained (UTC)
    """
    access_token: str
    refresh_token: str
    expires_at: datetime.datetime
    account_id: str
    last_refresh: Optional[datetime.datetime] = None

    def is_expired(self, margin: float = 0) -> bool:
        """Check if the access token is expired or within ``margin`` seconds of expiry"""
        return utcnow() + datetime.timedelta(seconds=margin) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat(),
            "account_id": self.account_id,
            "last_refresh": self.last_refresh.isoformat() if self.last_refresh else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        """Load from dictionary"""
        last_refresh = data.get("last_refresh")
        return cls(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_at=_parse_timestamp(data["expires_at"]),
            account_id=data["account_id"],
            last_refresh=_parse_timestamp(last_refresh) if last_refresh else None,
        )


@dataclass
class AuthState:
    """Authentication state derived from the credential store

    ``is_authenticated`` only says a credential is held; an expired token is
    still authenticated because the refresh path handles it.
    """
    is_authenticated: bool
    credentials: Optional[Credential] = None
    error: Optional[str] = None
    error_kind: Optional[AuthErrorKind] = field(default=None)

    @property
    def requires_reauthentication(self) -> bool:
        return self.error_kind in (AuthErrorKind.REFRESH_FAILED, AuthErrorKind.ACCOUNT_MISMATCH)

    @property
    def account_id(self) -> Optional[str]:
        return self.credentials.account_id if self.credentials else None
