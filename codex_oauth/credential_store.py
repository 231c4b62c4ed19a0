"""
ChatGPT OAuth credential lifecycle: login, persistence and refresh
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from .authorization import create_authorization_flow
from .callback_server import OAuthCallbackServer, start_callback_server
from .constants import OAUTH_CALLBACK_TIMEOUT, TOKEN_REFRESH_MARGIN
from .errors import (
    AccountMismatchError,
    AuthErrorKind,
    CodexOAuthError,
    NoAccountIdError,
    NotAuthenticatedError,
    RefreshFailedError,
    error_message,
)
from .jwt_utils import extract_account_id, get_token_claims
from .models import AuthorizationFlow, AuthState, Credential, TokenFailure, utcnow
from .token_exchange import TokenExchanger

logger = logging.getLogger(__name__)

LoadCredential = Callable[[], Optional[Credential]]
SaveCredential = Callable[[Credential], None]
ListenerFactory = Callable[[str], Awaitable[OAuthCallbackServer]]


def _retrieve_refresh_outcome(task: "asyncio.Task[Credential]") -> None:
    # Every waiter may have been cancelled; mark the failure as seen
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Refresh finished with {type(task.exception()).__name__}")


class CredentialStore:
    """Owns the in-memory credential and keeps it valid

    The persisted copy lives behind the ``load``/``save`` callbacks. Every
    successful exchange or refresh is saved before callers see it.

    Refreshes are coordinated through a single task handle: callers that need
    a token while a refresh is in flight await that same task, so one expiry
    produces at most one refresh request.
    """

    def __init__(
        self,
        load: LoadCredential,
        save: SaveCredential,
        exchanger: TokenExchanger,
        clear: Optional[Callable[[], object]] = None,
        listener_factory: ListenerFactory = start_callback_server,
        authorization_flow_factory: Callable[[], AuthorizationFlow] = create_authorization_flow,
        refresh_margin: float = TOKEN_REFRESH_MARGIN,
        callback_timeout: float = OAUTH_CALLBACK_TIMEOUT,
    ):
        """
        Args:
            load: Returns the persisted credential, or None
            save: Durably persists a credential (raises on failure)
            exchanger: Token endpoint client
            clear: Deletes the persisted credential (used by logout)
            listener_factory: Starts a callback server for a given state
            authorization_flow_factory: Builds PKCE pair, state and authorize URL
            refresh_margin: Seconds before expiry at which the token is refreshed
            callback_timeout: Seconds to wait for the browser redirect
        """
        self._load = load
        self._save = save
        self._clear = clear
        self.exchanger = exchanger
        self.listener_factory = listener_factory
        self.authorization_flow_factory = authorization_flow_factory
        self.refresh_margin = refresh_margin
        self.callback_timeout = callback_timeout

        self._credential: Optional[Credential] = None
        self._loaded = False
        self._error_kind: Optional[AuthErrorKind] = None
        self._error: Optional[str] = None
        self._refresh_task: Optional["asyncio.Task[Credential]"] = None
        self._session: Optional[OAuthCallbackServer] = None

    # State

    def _ensure_loaded(self) -> Optional[Credential]:
        if not self._loaded:
            self._credential = self._load()
            self._loaded = True
            if self._credential:
                logger.debug(f"Loaded credential for account {self._credential.account_id}")
        return self._credential

    def _set_error(self, kind: AuthErrorKind, message: Optional[str] = None) -> None:
        self._error_kind = kind
        self._error = message or error_message(kind)
        logger.error(self._error)

    def _clear_error(self) -> None:
        self._error_kind = None
        self._error = None

    def _persist(self, credential: Credential) -> None:
        self._save(credential)
        self._credential = credential
        self._loaded = True
        self._clear_error()

    def get_auth_state(self) -> AuthState:
        """Current authentication state; never touches the network"""
        credential = self._ensure_loaded()
        return AuthState(
            is_authenticated=credential is not None,
            credentials=credential,
            error=self._error,
            error_kind=self._error_kind,
        )

    @property
    def refresh_in_progress(self) -> bool:
        return self._refresh_task is not None

    @property
    def login_in_progress(self) -> bool:
        return self._session is not None

    # Token access

    async def get_valid_access_token(self) -> str:
        """Return an access token that is not within the refresh margin of expiry

        Raises:
            NotAuthenticatedError: no credential has been stored
            RefreshFailedError: the refresh grant was denied; log in again
            httpx.RequestError: the token endpoint could not be reached
        """
        credential = self._ensure_loaded()
        if credential is None:
            raise NotAuthenticatedError()

        if not credential.is_expired(self.refresh_margin):
            return credential.access_token

        refreshed = await self._join_refresh()
        return refreshed.access_token

    async def refresh_now(self) -> Credential:
        """Refresh regardless of expiry, sharing any refresh already in flight"""
        if self._ensure_loaded() is None:
            raise NotAuthenticatedError()
        return await self._join_refresh()

    async def _join_refresh(self) -> Credential:
        if self._refresh_task is None:
            self._refresh_task = asyncio.ensure_future(self._run_refresh())
            self._refresh_task.add_done_callback(_retrieve_refresh_outcome)
        # shield: a cancelled caller must not cancel the refresh other callers share
        return await asyncio.shield(self._refresh_task)

    async def _run_refresh(self) -> Credential:
        try:
            current = self._credential
            if current is None:
                raise NotAuthenticatedError()

            logger.info("Refreshing ChatGPT access token...")
            try:
                result = await self.exchanger.refresh(current.refresh_token)
            except httpx.RequestError as e:
                self._set_error(AuthErrorKind.NETWORK_ERROR, f"{error_message(AuthErrorKind.NETWORK_ERROR)} ({e})")
                raise

            if isinstance(result, TokenFailure):
                self._set_error(AuthErrorKind.REFRESH_FAILED)
                raise RefreshFailedError()

            try:
                account_id = extract_account_id(result.access)
            except NoAccountIdError:
                # Claim missing on a refreshed token: the chain's account id stands
                logger.warning("Refreshed token carries no account id; keeping stored account id")
                account_id = current.account_id

            if account_id != current.account_id:
                self._set_error(AuthErrorKind.ACCOUNT_MISMATCH)
                raise AccountMismatchError(expected=current.account_id, actual=account_id)

            refreshed = Credential(
                access_token=result.access,
                refresh_token=result.refresh,
                expires_at=result.expires,
                account_id=account_id,
                last_refresh=utcnow(),
            )
            try:
                self._persist(refreshed)
            except OSError as e:
                self._set_error(AuthErrorKind.REFRESH_FAILED, f"Failed to save refreshed credentials: {e}")
                raise
            logger.info("Access token refreshed successfully")
            return refreshed
        finally:
            self._refresh_task = None

    # Interactive login

    async def start_oauth_flow(self, on_url_ready: Callable[[str], object]) -> Optional[Credential]:
        """Run the interactive PKCE login end to end

        Args:
            on_url_ready: Receives the authorization URL (open a browser / print it)

        Returns:
            The saved credential, or None; ``get_auth_state().error`` says why
        """
        # One login attempt per process at a time
        await self._close_session()

        flow = self.authorization_flow_factory()

        try:
            session = await self.listener_factory(flow.state)
        except CodexOAuthError as e:
            self._set_error(e.kind or AuthErrorKind.PORT_IN_USE, str(e))
            return None
        self._session = session

        try:
            on_url_ready(flow.url)

            result = await session.wait_for_code(self.callback_timeout)
            if result is None:
                if self._session is not session:
                    logger.debug("OAuth login attempt superseded by a newer one")
                    return None
                self._set_error(session.failure or AuthErrorKind.CANCELLED)
                return None

            tokens = await self.exchanger.exchange_code(result.code, flow.pkce.verifier)
            if isinstance(tokens, TokenFailure):
                self._set_error(AuthErrorKind.EXCHANGE_FAILED)
                return None

            account_id = extract_account_id(tokens.access)
            logger.debug(f"Access token claims: {sorted(get_token_claims(tokens.access) or {})}")

            credential = Credential(
                access_token=tokens.access,
                refresh_token=tokens.refresh,
                expires_at=tokens.expires,
                account_id=account_id,
                last_refresh=utcnow(),
            )
            logger.info(f"Saving credentials for account: {account_id}")
            self._persist(credential)
            return credential

        except CodexOAuthError as e:
            self._set_error(e.kind or AuthErrorKind.EXCHANGE_FAILED, str(e))
            return None
        except httpx.RequestError as e:
            self._set_error(AuthErrorKind.NETWORK_ERROR, f"{error_message(AuthErrorKind.NETWORK_ERROR)} ({e})")
            return None
        except OSError as e:
            self._set_error(AuthErrorKind.EXCHANGE_FAILED, f"Failed to save credentials: {e}")
            return None
        finally:
            await session.close()
            if self._session is session:
                self._session = None

    async def _close_session(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            logger.debug("Closing previous OAuth callback session")
            await session.close()

    # Lifecycle

    async def logout(self) -> None:
        """Forget the credential in memory and on disk"""
        await self._close_session()
        self._credential = None
        self._loaded = True
        self._clear_error()
        if self._clear is not None:
            self._clear()
        logger.info("Logged out from ChatGPT")

    async def close(self) -> None:
        """Release the callback listener if a login is in progress"""
        await self._close_session()
