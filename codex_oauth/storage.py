"""Credential storage for ChatGPT OAuth"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from .models import Credential


logger = logging.getLogger(__name__)

DEFAULT_TOKEN_FILE = Path.home() / ".codex-oauth" / "credentials.json"


class CredentialFileStorage:
    """Manages persistent storage of the ChatGPT OAuth credential"""

    def __init__(self, token_file: Optional[Path] = None):
        """Initialize credential storage

        Args:
            token_file: Path to token file (default: ~/.codex-oauth/credentials.json)
        """
        if token_file is None:
            token_file = DEFAULT_TOKEN_FILE

        self.token_file = Path(token_file).expanduser()

    def _ensure_directory(self) -> None:
        """Ensure storage directory exists"""
        self.token_file.parent.mkdir(parents=True, exist_ok=True)

    def save(self, credential: Credential) -> None:
        """Write the credential to disk

        The file is replaced atomically and is readable by the owner only.

        Raises:
            OSError: the credential could not be written
        """
        self._ensure_directory()

        fd, tmp_path = tempfile.mkstemp(
            prefix=".credentials-", suffix=".tmp", dir=str(self.token_file.parent)
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(credential.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.token_file)
        except OSError as e:
            logger.error(f"Failed to save ChatGPT credentials: {e}")
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(f"Saved ChatGPT credentials to {self.token_file}")

    def load(self) -> Optional[Credential]:
        """Load the credential from disk

        Returns:
            Credential, or None if not found or unreadable
        """
        if not self.token_file.exists():
            logger.debug("No ChatGPT credential file found")
            return None

        try:
            data = json.loads(self.token_file.read_text())
            credential = Credential.from_dict(data)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load ChatGPT credentials: {e}")
            return None
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Ignoring malformed ChatGPT credential file {self.token_file}: {e}")
            return None

        logger.debug("Loaded ChatGPT credentials from disk")
        return credential

    def clear(self) -> bool:
        """Clear stored credentials

        Returns:
            True if credentials were cleared successfully
        """
        try:
            if self.token_file.exists():
                self.token_file.unlink()
                logger.info("Cleared ChatGPT credentials")
            return True

        except OSError as e:
            logger.error(f"Failed to clear ChatGPT credentials: {e}")
            return False
