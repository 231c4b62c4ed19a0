"""
ChatGPT (Codex) OAuth service: the process-wide entry point to authentication

The presentation layer uses ``start_oauth_flow`` / ``get_auth_state``; the
request-sending side uses ``get_valid_access_token`` or ``get_request_headers``.
"""
import functools
import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import httpx

from headers import build_codex_headers

from .authorization import build_redirect_uri, create_authorization_flow
from .callback_server import start_callback_server
from .constants import (
    OAUTH_CALLBACK_HOST,
    OAUTH_CALLBACK_PORT,
    OAUTH_CALLBACK_TIMEOUT,
    REDIRECT_URI,
    TOKEN_REFRESH_MARGIN,
)
from .credential_store import CredentialStore
from .errors import NotAuthenticatedError
from .models import AuthState, Credential
from .storage import CredentialFileStorage
from .token_exchange import TokenExchanger

logger = logging.getLogger(__name__)


class CodexOAuthService:
    """Composes storage, token exchange and the credential store

    Construct one per process (see ``get_codex_oauth_service``) and pass it to
    whatever needs a token; tests build their own instance.
    """

    def __init__(
        self,
        token_file: Optional[Union[str, Path]] = None,
        storage: Optional[CredentialFileStorage] = None,
        exchanger: Optional[TokenExchanger] = None,
        callback_host: str = OAUTH_CALLBACK_HOST,
        callback_port: int = OAUTH_CALLBACK_PORT,
        callback_timeout: float = OAUTH_CALLBACK_TIMEOUT,
        refresh_margin: float = TOKEN_REFRESH_MARGIN,
        token_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            token_file: Credential file path (ignored when ``storage`` is given)
            storage: Credential storage
            exchanger: Token endpoint client; it must use ``redirect_uri``
            callback_host: Loopback address for the OAuth callback server
            callback_port: Port for the OAuth callback server
            callback_timeout: Seconds to wait for the browser redirect
            refresh_margin: Seconds before expiry at which tokens are refreshed
            token_timeout: Request timeout for the default exchanger
            transport: httpx transport for the default exchanger
        """
        # The authorize URL and the code exchange both name the listener's address
        self.redirect_uri = build_redirect_uri(callback_host, callback_port)
        if self.redirect_uri != REDIRECT_URI:
            logger.warning(
                f"Using redirect URI {self.redirect_uri}; the Codex client is registered for {REDIRECT_URI}"
            )

        self.storage = storage or CredentialFileStorage(Path(token_file) if token_file else None)
        self.exchanger = exchanger or TokenExchanger(
            redirect_uri=self.redirect_uri, timeout=token_timeout, transport=transport
        )
        self.store = CredentialStore(
            load=self.storage.load,
            save=self.storage.save,
            clear=self.storage.clear,
            exchanger=self.exchanger,
            listener_factory=functools.partial(
                start_callback_server, host=callback_host, port=callback_port
            ),
            authorization_flow_factory=functools.partial(
                create_authorization_flow, redirect_uri=self.redirect_uri
            ),
            refresh_margin=refresh_margin,
            callback_timeout=callback_timeout,
        )

    @classmethod
    def from_settings(cls) -> "CodexOAuthService":
        """Build the service from ``settings`` (environment / .env)"""
        import settings

        return cls(
            token_file=settings.CODEX_TOKEN_FILE,
            callback_host=settings.OAUTH_CALLBACK_HOST,
            callback_port=settings.OAUTH_CALLBACK_PORT,
            callback_timeout=settings.OAUTH_CALLBACK_TIMEOUT,
            refresh_margin=settings.TOKEN_REFRESH_MARGIN,
            token_timeout=settings.TOKEN_REQUEST_TIMEOUT,
        )

    async def start_oauth_flow(self, on_url_ready: Callable[[str], object]) -> Optional[Credential]:
        """Start the interactive browser login

        Args:
            on_url_ready: Called once with the authorization URL

        Returns:
            Credential on success, None otherwise (see ``get_auth_state().error``)
        """
        return await self.store.start_oauth_flow(on_url_ready)

    def get_auth_state(self) -> AuthState:
        """Get authentication state"""
        return self.store.get_auth_state()

    def is_authenticated(self) -> bool:
        """True when a credential is held that does not need re-authentication"""
        state = self.get_auth_state()
        return state.is_authenticated and not state.requires_reauthentication

    async def get_valid_access_token(self) -> str:
        """Get a valid access token, refreshing it when needed"""
        return await self.store.get_valid_access_token()

    async def get_request_headers(self) -> Dict[str, str]:
        """Headers for a Codex backend request (bearer token and account id)"""
        token = await self.get_valid_access_token()
        state = self.get_auth_state()
        if state.credentials is None:
            raise NotAuthenticatedError()
        return build_codex_headers(token, state.credentials.account_id)

    async def refresh_tokens(self) -> Credential:
        """Refresh now, whether or not the token is close to expiry"""
        return await self.store.refresh_now()

    async def logout(self) -> None:
        """Logout - clear credentials"""
        await self.store.logout()

    async def close(self) -> None:
        """Cleanup resources"""
        await self.store.close()


# Singleton instance
_codex_oauth_service: Optional[CodexOAuthService] = None


def get_codex_oauth_service() -> CodexOAuthService:
    """Get or create the process-wide CodexOAuthService"""
    global _codex_oauth_service
    if _codex_oauth_service is None:
        _codex_oauth_service = CodexOAuthService.from_settings()
    return _codex_oauth_service
