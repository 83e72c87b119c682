"""Keyring storage for the YouTube browser cookies.

The cookie string authorizes sending and moderation, so it is kept out of
settings.json whenever a working keyring backend (GNOME Keyring, KWallet,
macOS Keychain, ...) exists.
"""

import logging
import os
import stat
from pathlib import Path

import keyring
from keyring.backends.fail import Keyring as FailKeyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

SERVICE_NAME = "ytlivechat"
COOKIES_KEY = "youtube_cookies"


class CookieStore:
    """Reads and writes the cookie string of one keyring entry.

    Whether the keyring works is decided on first use: a fail backend, or a
    backend that errors while reading the entry, makes the store unavailable
    for the rest of the process.
    """

    def __init__(self, service: str = SERVICE_NAME, key: str = COOKIES_KEY):
        self.service = service
        self.key = key
        self._available: bool | None = None
        self._cached: str | None = None

    @property
    def available(self) -> bool:
        if self._available is None:
            self._available = self._check_backend()
        return self._available

    def _check_backend(self) -> bool:
        backend = keyring.get_keyring()
        if isinstance(backend, FailKeyring):
            logger.info("No keyring backend; cookies stay in settings.json")
            return False
        try:
            self._cached = keyring.get_password(self.service, self.key)
        except (KeyringError, RuntimeError) as e:
            logger.info(f"Keyring unusable ({type(backend).__name__}): {e}")
            return False
        logger.debug(f"Using keyring backend {type(backend).__name__}")
        return True

    def load(self) -> str | None:
        """Stored cookie string, or None when absent or unavailable."""
        if not self.available:
            return None
        if self._cached is not None:
            return self._cached
        try:
            self._cached = keyring.get_password(self.service, self.key)
        except KeyringError as e:
            logger.warning(f"Failed to read YouTube cookies from keyring: {e}")
            return None
        return self._cached

    def save(self, cookies: str) -> bool:
        """Store ``cookies`` (an empty string removes the entry).

        Returns False when the caller has to keep the cookies itself.
        """
        if not self.available:
            return False
        if not cookies:
            self.clear()
            return True
        try:
            keyring.set_password(self.service, self.key, cookies)
        except KeyringError as e:
            logger.warning(f"Failed to store YouTube cookies in keyring: {e}")
            return False
        self._cached = cookies
        return True

    def clear(self) -> None:
        self._cached = None
        if not self.available:
            return
        try:
            keyring.delete_password(self.service, self.key)
        except PasswordDeleteError:
            logger.debug("No YouTube cookies in keyring")


def restrict_to_owner(path: Path) -> None:
    """chmod 600 a file that holds cookies in plain text."""
    try:
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
    except OSError as e:
        logger.debug(f"Could not set permissions on {path}: {e}")
