"""
Persists the SoundCloud OAuth token in the user's config directory.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from soundcloud_cli.exceptions import ConfigurationError

log = logging.getLogger(__name__)

TOKEN_FILE_NAME = "token"


class TokenStore:
    """Reads, overwrites and clears a single plain-text token file."""

    def __init__(self, config_dir: Path):
        self.token_path = config_dir / TOKEN_FILE_NAME

    def load(self) -> Optional[str]:
        """
        Loads the stored token.

        Returns:
            The token, or None if the file is absent, unreadable or blank.
        """
        try:
            token = self.token_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            log.warning(f"[yellow]Could not read stored token:[/] {e}")
            return None
        return token or None

    def save(self, token: str) -> None:
        """
        Overwrites the stored token, creating the config directory if needed.

        Raises:
            ConfigurationError: If the file cannot be written.
        """
        token = token.strip()
        if not token:
            raise ConfigurationError("Refusing to save an empty token.")
        try:
            self.token_path.parent.mkdir(parents=True, exist_ok=True)
            self.token_path.write_text(token, encoding="utf-8")
            if os.name != "nt":
                os.chmod(self.token_path, 0o600)
        except OSError as e:
            raise ConfigurationError(f"Failed to save token: {e}") from e
        log.debug(f"Token saved to '{self.token_path}'")

    def clear(self) -> None:
        """Deletes the stored token. Does nothing if there is none."""
        try:
            self.token_path.unlink()
            log.debug(f"Removed token file '{self.token_path}'")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ConfigurationError(f"Failed to clear token: {e}") from e
