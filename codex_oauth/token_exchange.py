"""
ChatGPT OAuth token exchange (from openai/codex CLI)
"""
import datetime
import json
import logging
import math
from typing import Any, Dict, Optional

import httpx

from .constants import TOKEN_URL, CLIENT_ID, REDIRECT_URI
from .models import TokenFailure, TokenResult, TokenSuccess, utcnow

logger = logging.getLogger(__name__)

# Access tokens never live longer than this; larger values are treated as garbage
MAX_EXPIRES_IN = 365 * 24 * 3600


class TokenExchanger:
    """Talks to the OAuth token endpoint

    Both grants return a ``TokenResult``: a rejected grant or an unusable body
    becomes ``TokenFailure``. Transport errors (``httpx.RequestError``) are not
    caught here; they mean the endpoint was never reached.
    """

    def __init__(
        self,
        token_url: str = TOKEN_URL,
        client_id: str = CLIENT_ID,
        redirect_uri: str = REDIRECT_URI,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            token_url: OAuth token endpoint
            client_id: OAuth client ID
            redirect_uri: Redirect URI registered for the authorization code grant
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to mock the endpoint)
        """
        self.token_url = token_url
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self.transport = transport

    async def exchange_code(self, code: str, code_verifier: str) -> TokenResult:
        """
        Exchange authorization code for access and refresh tokens.

        Args:
            code: Authorization code from callback
            code_verifier: PKCE code verifier

        Returns:
            TokenSuccess, or TokenFailure if the code was rejected
        """
        return await self._request_tokens(
            {
                "grant_type": "authorization_code",
                "client_id": self.client_id,
                "code": code,
                "code_verifier": code_verifier,
                "redirect_uri": self.redirect_uri,
            },
            label="Token exchange",
        )

    async def refresh(self, refresh_token: str) -> TokenResult:
        """
        Refresh access token using refresh token.

        Args:
            refresh_token: OAuth refresh token

        Returns:
            TokenSuccess, or TokenFailure if the refresh grant was denied
        """
        return await self._request_tokens(
            {
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "refresh_token": refresh_token,
            },
            label="Token refresh",
            fallback_refresh_token=refresh_token,
        )

    async def _request_tokens(
        self,
        data: Dict[str, str],
        label: str,
        fallback_refresh_token: Optional[str] = None,
    ) -> TokenResult:
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            response = await client.post(
                self.token_url,
                data=data,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                },
            )

        if not response.is_success:
            logger.error(f"{label} failed with status {response.status_code}")
            logger.debug(f"{label} response: {response.text}")
            return TokenFailure()

        try:
            payload = response.json()
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse {label.lower()} response: {e}")
            return TokenFailure()

        return _parse_token_payload(payload, label, fallback_refresh_token)


def _parse_token_payload(
    payload: Any,
    label: str,
    fallback_refresh_token: Optional[str] = None,
) -> TokenResult:
    if not isinstance(payload, dict):
        logger.error(f"{label} response is not a JSON object")
        return TokenFailure()

    access_token = payload.get("access_token")
    # Refresh responses may not rotate the refresh token
    refresh_token = payload.get("refresh_token") or fallback_refresh_token
    expires_in = payload.get("expires_in")

    if (
        not isinstance(access_token, str) or not access_token
        or not isinstance(refresh_token, str) or not refresh_token
        or not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool)
    ):
        logger.error(f"{label} response missing required fields: {sorted(payload)}")
        return TokenFailure()

    if not math.isfinite(expires_in) or not 0 <= expires_in <= MAX_EXPIRES_IN:
        logger.error(f"{label} response has unusable expires_in: {expires_in!r}")
        return TokenFailure()

    return TokenSuccess(
        access=access_token,
        refresh=refresh_token,
        expires=utcnow() + datetime.timedelta(seconds=expires_in),
    )
