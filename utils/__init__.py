"""Shared utilities package for codex-oauth"""

from .debug_console import (
    DebugCapturingConsole,
    create_debug_console,
    setup_debug_logger,
    configure_logging,
    redact_secrets,
    RedactingFilter,
)

__all__ = [
    "DebugCapturingConsole",
    "create_debug_console",
    "setup_debug_logger",
    "configure_logging",
    "redact_secrets",
    "RedactingFilter",
]
