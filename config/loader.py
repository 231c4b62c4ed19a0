"""Configuration loader for the Codex OAuth CLI

Values are resolved with the following priority:
1. Environment variables (highest priority)
2. .env file
3. Hardcoded defaults (lowest priority)

The loader remembers where each looked-up value came from so ``--debug``
sessions can report it.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Set
from dotenv import dotenv_values, load_dotenv

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1", "yes", "on")

SOURCE_ENVIRONMENT = "environment"
SOURCE_DOTENV = ".env"
SOURCE_DEFAULT = "default"


class ConfigLoader:
    """Resolves settings from the environment, a .env file and defaults"""

    def __init__(self, env_path: Optional[str] = None):
        """
        Args:
            env_path: Optional path to .env file.
                     Defaults to '.env' in the current directory.
        """
        self.env_path = Path(env_path) if env_path else Path(".env")
        self._dotenv_keys: Set[str] = set()
        self._sources: Dict[str, str] = {}
        self._load_env_file()

    def _load_env_file(self):
        if not self.env_path.exists():
            logger.debug(f".env file not found at {self.env_path}, using environment variables and defaults only")
            return

        # Keys the file actually contributes; the environment wins on conflicts
        file_values = dotenv_values(self.env_path)
        self._dotenv_keys = {key for key in file_values if key not in os.environ}
        load_dotenv(dotenv_path=self.env_path, override=False)
        logger.debug(f"Loaded {len(self._dotenv_keys)} value(s) from {self.env_path}")

    def source_of(self, env_var: str) -> str:
        """Where the last ``get`` of ``env_var`` took its value from"""
        return self._sources.get(env_var, SOURCE_DEFAULT)

    def get(self, env_var: str, default: Any) -> Any:
        """Get a configuration value, converted to the type of ``default``

        Unparseable numbers fall back to the default with a warning. String
        values starting with ``~/`` are expanded to the user's home.
        """
        raw = os.getenv(env_var)
        if raw is None:
            self._sources[env_var] = SOURCE_DEFAULT
            return self._expand(default) if isinstance(default, str) else default

        self._sources[env_var] = SOURCE_DOTENV if env_var in self._dotenv_keys else SOURCE_ENVIRONMENT

        if isinstance(default, bool):
            return raw.strip().lower() in TRUE_VALUES
        if isinstance(default, (int, float)):
            return self._parse_number(env_var, raw, default)
        return self._expand(raw)

    @staticmethod
    def _parse_number(env_var: str, raw: str, default):
        try:
            return type(default)(raw)
        except ValueError:
            logger.warning(f"Failed to parse {env_var}={raw} as {type(default).__name__}, using default: {default}")
            return default

    @staticmethod
    def _expand(value: str) -> str:
        if value.startswith("~/"):
            return str(Path(value).expanduser())
        return value


_config_loader = None


def get_config_loader() -> ConfigLoader:
    """Get or create the global ConfigLoader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader
