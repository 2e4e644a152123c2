"""
Persistence of the player's API key between sessions.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Stores a single API key in a small JSON file.

    The game only cares whether a key is present; the key itself is
    handed to the AI client untouched.
    """

    def __init__(self, path: str = "~/.adsim/credentials.json"):
        """
        Initialize the store.

        Args:
            path: Location of the credentials file
        """
        self.path = Path(path).expanduser()

    def load(self) -> Optional[str]:
        """
        Load the stored key.

        Returns:
            The key, or None if none is stored or the file is unreadable
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading credentials from {self.path}: {str(e)}")
            return None

        key = data.get('api_key') if isinstance(data, dict) else None
        return key or None

    def save(self, key: str):
        """Persist the key, readable only by the current user."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump({'api_key': key}, f)
        os.chmod(self.path, 0o600)
        logger.info(f"Saved API key to {self.path}")

    def clear(self):
        """Remove the stored key."""
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Removed stored API key at {self.path}")


class InMemoryCredentialStore:
    """Credential store that keeps the key for the life of the process."""

    def __init__(self, key: Optional[str] = None):
        self._key = key

    def load(self) -> Optional[str]:
        return self._key

    def save(self, key: str):
        self._key = key

    def clear(self):
        self._key = None
