"""HTTP headers and constants package for the Codex backend"""

from .constants import (
    AUTHORIZATION_HEADER,
    OPENAI_BETA_HEADER,
    ACCOUNT_ID_HEADER,
    ORIGINATOR_HEADER,
    build_codex_headers,
)

__all__ = [
    "AUTHORIZATION_HEADER",
    "OPENAI_BETA_HEADER",
    "ACCOUNT_ID_HEADER",
    "ORIGINATOR_HEADER",
    "build_codex_headers",
]
