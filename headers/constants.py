"""HTTP Request Headers for the ChatGPT Codex backend

These values make requests look like they come from the official Codex CLI
"""

from typing import Dict

# Header names
AUTHORIZATION_HEADER = "Authorization"
OPENAI_BETA_HEADER = "OpenAI-Beta"
ACCOUNT_ID_HEADER = "chatgpt-account-id"
ORIGINATOR_HEADER = "originator"

# Header values
OPENAI_BETA_RESPONSES = "responses=experimental"
ORIGINATOR_CODEX = "codex_cli_rs"


def build_codex_headers(access_token: str, account_id: str) -> Dict[str, str]:
    """Headers every Codex backend request carries

    Args:
        access_token: Valid OAuth access token
        account_id: ChatGPT account ID from the token claims

    Returns:
        Header dictionary
    """
    return {
        AUTHORIZATION_HEADER: f"Bearer {access_token}",
        ACCOUNT_ID_HEADER: account_id,
        OPENAI_BETA_HEADER: OPENAI_BETA_RESPONSES,
        ORIGINATOR_HEADER: ORIGINATOR_CODEX,
    }
