"""
JWT token parsing and ChatGPT account ID extraction (from openai/codex CLI)
"""
import base64
import binascii
import datetime
import json
import logging
from typing import Dict, Optional, Any

from .constants import JWT_CLAIM_PATH, CHATGPT_ACCOUNT_ID_CLAIM
from .errors import NoAccountIdError

logger = logging.getLogger(__name__)


def decode_jwt(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode JWT token without verification.

    Note: This only decodes the payload, does not verify signature.
    The token comes straight from the provider's token endpoint.

    Args:
        token: JWT access token

    Returns:
        Decoded JWT payload as dictionary, or None if invalid
    """
    # JWT structure: header.payload.signature
    parts = token.split(".")
    if len(parts) != 3:
        logger.debug(f"Invalid JWT format: expected 3 parts, got {len(parts)}")
        return None

    payload = parts[1]

    # Add padding if needed (JWT uses base64url without padding)
    padding = 4 - (len(payload) % 4)
    if padding != 4:
        payload += "=" * padding

    try:
        decoded = json.loads(base64.urlsafe_b64decode(payload).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        logger.debug(f"Error decoding JWT: {e}")
        return None

    if not isinstance(decoded, dict):
        return None
    return decoded


def extract_account_id(access_token: str) -> str:
    """
    Extract ChatGPT account ID from JWT access token.

    The account ID is stored in a custom claim path:
    token[JWT_CLAIM_PATH][CHATGPT_ACCOUNT_ID_CLAIM]

    Args:
        access_token: OAuth access token (JWT format)

    Returns:
        ChatGPT account ID

    Raises:
        NoAccountIdError: payload undecodable or claim absent
    """
    payload = decode_jwt(access_token)
    if payload is None:
        raise NoAccountIdError("Access token payload could not be decoded")

    claims = payload.get(JWT_CLAIM_PATH)
    if not isinstance(claims, dict):
        raise NoAccountIdError(f"No claims found at path: {JWT_CLAIM_PATH}")

    account_id = claims.get(CHATGPT_ACCOUNT_ID_CLAIM)
    if not isinstance(account_id, str) or not account_id:
        raise NoAccountIdError(f"No account ID found in claim: {CHATGPT_ACCOUNT_ID_CLAIM}")

    return account_id


def get_token_claims(access_token: str) -> Optional[Dict[str, Any]]:
    """
    Get all claims from JWT token for debugging.

    Args:
        access_token: OAuth access token

    Returns:
        Full JWT payload or None if invalid
    """
    return decode_jwt(access_token)


def get_token_expiry(access_token: str) -> Optional[datetime.datetime]:
    """Expiry from the ``exp`` claim, if the token carries one"""
    claims = decode_jwt(access_token) or {}
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    try:
        return datetime.datetime.fromtimestamp(float(exp), datetime.timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
