"""
ChatGPT (Codex) OAuth constants (from openai/codex CLI)
"""

# OAuth Configuration
CLIENT_ID = "app_EMoamEEZ73f0CkXaXp7hrann"
AUTHORIZE_URL = "https://auth.openai.com/oauth/authorize"
TOKEN_URL = "https://auth.openai.com/oauth/token"
REDIRECT_URI = "http://localhost:1455/auth/callback"
SCOPE = "openid profile email offline_access"

# Extra authorize parameters the Codex CLI sends (required for token exchange)
CODEX_AUTHORIZE_EXTRAS = {
    "id_token_add_organizations": "true",
    "codex_cli_simplified_flow": "true",
    "originator": "codex_cli_rs",
}

# JWT claim path for ChatGPT account ID
JWT_CLAIM_PATH = "https://api.openai.com/auth"
CHATGPT_ACCOUNT_ID_CLAIM = "chatgpt_account_id"

# OAuth callback server
OAUTH_CALLBACK_HOST = "127.0.0.1"
OAUTH_CALLBACK_PORT = 1455
OAUTH_CALLBACK_PATH = "/auth/callback"
OAUTH_CALLBACK_TIMEOUT = 300

# Refresh when the access token is within this many seconds of expiry
TOKEN_REFRESH_MARGIN = 60
