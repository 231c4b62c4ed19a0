"""
ChatGPT OAuth authorization flow with PKCE (from openai/codex CLI)
"""
import base64
import hashlib
import logging
import secrets
import webbrowser
from urllib.parse import urlencode

from .constants import (
    CLIENT_ID,
    AUTHORIZE_URL,
    REDIRECT_URI,
    SCOPE,
    CODEX_AUTHORIZE_EXTRAS,
    OAUTH_CALLBACK_HOST,
    OAUTH_CALLBACK_PORT,
    OAUTH_CALLBACK_PATH,
)
from .models import AuthorizationFlow, PKCEPair

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")


def build_redirect_uri(host: str = OAUTH_CALLBACK_HOST, port: int = OAUTH_CALLBACK_PORT) -> str:
    """Redirect URI served by a callback server bound to ``host:port``

    Loopback addresses are written as ``localhost``, the form registered for
    the Codex client. The defaults give ``REDIRECT_URI``.
    """
    if host in LOOPBACK_HOSTS:
        host = "localhost"
    return f"http://{host}:{port}{OAUTH_CALLBACK_PATH}"


def compute_code_challenge(verifier: str) -> str:
    """SHA-256 of the verifier, base64url encoded without padding (S256)"""
    challenge_bytes = hashlib.sha256(verifier.encode('utf-8')).digest()
    return base64.urlsafe_b64encode(challenge_bytes).decode('utf-8').rstrip('=')


def generate_pkce() -> PKCEPair:
    """
    Generate PKCE code verifier and challenge.

    RFC 7636 PKCE standard:
    - Verifier: 43-128 characters, base64url encoded (32 bytes -> 43 chars)
    - Challenge: SHA-256 hash of verifier, base64url encoded

    Returns:
        PKCEPair: Tuple of (verifier, challenge)
    """
    verifier = secrets.token_urlsafe(32)
    return PKCEPair(verifier=verifier, challenge=compute_code_challenge(verifier))


def create_state() -> str:
    """
    Generate random state parameter for CSRF protection.

    Returns:
        str: 32-byte random state string
    """
    return secrets.token_urlsafe(32)


def create_authorization_flow(
    client_id: str = CLIENT_ID,
    redirect_uri: str = REDIRECT_URI,
    scope: str = SCOPE,
    authorize_url: str = AUTHORIZE_URL,
) -> AuthorizationFlow:
    """
    Create ChatGPT OAuth authorization flow.

    Generates PKCE pair, state, and authorization URL with all required parameters
    matching the openai/codex CLI behavior.

    Returns:
        AuthorizationFlow: Tuple of (pkce, state, url)
    """
    pkce = generate_pkce()
    state = create_state()

    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scope,
        "code_challenge": pkce.challenge,
        "code_challenge_method": "S256",
        "state": state,
        **CODEX_AUTHORIZE_EXTRAS,
    }

    url = f"{authorize_url}?{urlencode(params)}"

    return AuthorizationFlow(pkce=pkce, state=state, url=url)


def open_browser(url: str) -> bool:
    """Open URL in the default browser

    Returns:
        True if a browser was launched; False means the user has to open it manually
    """
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as e:
        logger.debug(f"Could not open browser: {e}")
        return False
    if not opened:
        logger.debug("No runnable browser found")
    return opened
