"""
ChatGPT (Codex) OAuth authentication module

Lets a terminal coding assistant use a ChatGPT Plus/Pro subscription instead
of a Platform API key.
"""
from .constants import (
    CLIENT_ID,
    AUTHORIZE_URL,
    TOKEN_URL,
    REDIRECT_URI,
    SCOPE,
    JWT_CLAIM_PATH,
    CHATGPT_ACCOUNT_ID_CLAIM,
    OAUTH_CALLBACK_PORT,
    OAUTH_CALLBACK_PATH,
)
from .errors import (
    AuthErrorKind,
    CodexOAuthError,
    PortInUseError,
    NoAccountIdError,
    NotAuthenticatedError,
    RefreshFailedError,
    AccountMismatchError,
    error_message,
)
from .models import (
    PKCEPair,
    AuthorizationFlow,
    CallbackResult,
    TokenSuccess,
    TokenFailure,
    TokenResult,
    Credential,
    AuthState,
)
from .authorization import (
    generate_pkce,
    create_state,
    build_redirect_uri,
    create_authorization_flow,
    open_browser,
)
from .token_exchange import TokenExchanger
from .jwt_utils import (
    decode_jwt,
    extract_account_id,
    get_token_claims,
)
from .callback_server import (
    OAuthCallbackServer,
    start_callback_server,
)
from .storage import CredentialFileStorage
from .credential_store import CredentialStore
from .service import CodexOAuthService, get_codex_oauth_service

__all__ = [
    # Constants
    "CLIENT_ID",
    "AUTHORIZE_URL",
    "TOKEN_URL",
    "REDIRECT_URI",
    "SCOPE",
    "JWT_CLAIM_PATH",
    "CHATGPT_ACCOUNT_ID_CLAIM",
    "OAUTH_CALLBACK_PORT",
    "OAUTH_CALLBACK_PATH",
    # Errors
    "AuthErrorKind",
    "CodexOAuthError",
    "PortInUseError",
    "NoAccountIdError",
    "NotAuthenticatedError",
    "RefreshFailedError",
    "AccountMismatchError",
    "error_message",
    # Models
    "PKCEPair",
    "AuthorizationFlow",
    "CallbackResult",
    "TokenSuccess",
    "TokenFailure",
    "TokenResult",
    "Credential",
    "AuthState",
    # Authorization
    "generate_pkce",
    "create_state",
    "build_redirect_uri",
    "create_authorization_flow",
    "open_browser",
    # Token Exchange
    "TokenExchanger",
    # JWT Utilities
    "decode_jwt",
    "extract_account_id",
    "get_token_claims",
    # Callback Server
    "OAuthCallbackServer",
    "start_callback_server",
    # Storage
    "CredentialFileStorage",
    # Credential lifecycle
    "CredentialStore",
    "CodexOAuthService",
    "get_codex_oauth_service",
]
