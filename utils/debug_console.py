"""Debug logging and console capture.

When ``--debug`` is given, all log records and everything printed to the
Rich console are appended to one debug log file, so a failed login can be
diagnosed from a single file.
"""

import io
import logging
import os
import re
from typing import Optional
from rich.console import Console as RichConsole

ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

# header.payload.signature, each segment base64url
JWT_PATTERN = re.compile(r'\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*')


def redact_secrets(text: str) -> str:
    """Replace anything shaped like a JWT with a placeholder"""
    return JWT_PATTERN.sub("<redacted-jwt>", text)


class RedactingFilter(logging.Filter):
    """Scrubs JWTs from records before they reach the debug log file"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class DebugCapturingConsole(RichConsole):
    """
    Rich Console that also writes a plain text copy of its output to a logger.

    Terminal rendering is unchanged; the logger receives the text without
    markup or ANSI codes.
    """

    def __init__(self, debug_logger: Optional[logging.Logger] = None, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.debug_logger = debug_logger
        self._log_prefix = "[CONSOLE] "

    def print(self, *objects, **kwargs):
        super().print(*objects, **kwargs)

        if self.debug_logger and self.debug_logger.isEnabledFor(logging.DEBUG):
            plain_text = self._render_to_plain_text(*objects, **kwargs)
            if plain_text.strip():
                self.debug_logger.debug(f"{self._log_prefix}{redact_secrets(plain_text)}")

    def _render_to_plain_text(self, *objects, **kwargs) -> str:
        """Render the objects the way print would, minus styling"""
        string_buffer = io.StringIO()
        temp_console = RichConsole(
            file=string_buffer,
            force_terminal=False,
            width=self.width,
            legacy_windows=False
        )
        temp_console.print(*objects, **kwargs)
        return ANSI_ESCAPE.sub('', string_buffer.getvalue()).rstrip()


def create_debug_console(debug_enabled: bool = False,
                        debug_logger: Optional[logging.Logger] = None) -> RichConsole:
    """
    Create appropriate console instance based on debug mode.

    Returns:
        DebugCapturingConsole if debug enabled, regular Console otherwise
    """
    if debug_enabled and debug_logger:
        return DebugCapturingConsole(debug_logger=debug_logger)
    return RichConsole()


def setup_debug_logger(log_file: str = "codex_oauth_debug.log") -> logging.Logger:
    """
    Set up a dedicated logger for debug console output.

    Args:
        log_file: Path to debug log file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("debug_console")
    logger.setLevel(logging.DEBUG)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
    file_handler.addFilter(RedactingFilter())
    logger.addHandler(file_handler)

    # Prevent propagation to avoid duplicate logs
    logger.propagate = False

    return logger


def configure_logging(level: str = "info", debug: bool = False,
                      log_file: str = "codex_oauth_debug.log") -> Optional[logging.Logger]:
    """
    Configure the root logger for the CLI.

    Without debug only warnings and errors reach the terminal (or ``level`` if
    it is stricter); the Rich console carries the user-facing output. With debug
    everything is appended to ``log_file``.

    Returns:
        The console capture logger when debug is enabled, otherwise None
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    if not debug:
        level_value = logging.getLevelName(level.upper())
        if not isinstance(level_value, int):
            level_value = logging.INFO
        console_level = max(logging.WARNING, level_value)
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
        root_logger.setLevel(console_level)
        return None

    log_path = os.path.abspath(log_file)
    root_logger.setLevel(logging.DEBUG)

    file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    file_handler.addFilter(RedactingFilter())
    root_logger.addHandler(file_handler)

    debug_logger = setup_debug_logger(log_path)
    logging.getLogger(__name__).info(f"Debug logging enabled - appending to {log_path}")
    return debug_logger
