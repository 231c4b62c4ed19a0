from pathlib import Path
from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

# Logging
LOG_LEVEL = config.get("LOG_LEVEL", "info")
DEBUG_LOG_FILE = config.get("DEBUG_LOG_FILE", "codex_oauth_debug.log")

# Credential storage (JSON file, owner read/write only)
CODEX_TOKEN_FILE = config.get("CODEX_TOKEN_FILE", str(Path.home() / ".codex-oauth" / "credentials.json"))

# OAuth callback server
# The redirect URI is built from host and port. The Codex client is registered
# for localhost:1455, so other values only work against a different authorization server.
OAUTH_CALLBACK_HOST = config.get("OAUTH_CALLBACK_HOST", "127.0.0.1")
OAUTH_CALLBACK_PORT = config.get("OAUTH_CALLBACK_PORT", 1455)
# Seconds to wait for the browser redirect before giving up
OAUTH_CALLBACK_TIMEOUT = config.get("OAUTH_CALLBACK_TIMEOUT", 300.0)

# Token lifecycle
# Refresh the access token when it is this many seconds away from expiry
TOKEN_REFRESH_MARGIN = config.get("TOKEN_REFRESH_MARGIN", 60.0)
# Total timeout for requests to the token endpoint
TOKEN_REQUEST_TIMEOUT = config.get("TOKEN_REQUEST_TIMEOUT", 30.0)
