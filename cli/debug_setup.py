"""Debug console setup for CLI"""

from rich.console import Console

import settings
from config import get_config_loader
from utils.debug_console import configure_logging, create_debug_console


def setup_debug_console(debug: bool) -> Console:
    """
    Configure logging and return the console the CLI prints to

    Args:
        debug: Whether debug mode is enabled

    Returns:
        Console instance (either regular or debug-enabled)
    """
    debug_logger = configure_logging(
        level=settings.LOG_LEVEL,
        debug=debug,
        log_file=settings.DEBUG_LOG_FILE,
    )

    console = create_debug_console(debug_enabled=debug, debug_logger=debug_logger)
    if debug_logger:
        debug_logger.debug("[CLI] ===== CLI SESSION STARTED =====")
        config = get_config_loader()
        for name in ("CODEX_TOKEN_FILE", "OAUTH_CALLBACK_HOST", "OAUTH_CALLBACK_PORT", "TOKEN_REFRESH_MARGIN"):
            debug_logger.debug(f"[CLI] {name}={getattr(settings, name)} (from {config.source_of(name)})")

    return console
