"""Settings management for ytlivechat."""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from appdirs import user_config_dir

from .credential_store import CookieStore, restrict_to_owner
from .errors import ConfigurationError
from .models import ChatLocale

logger = logging.getLogger(__name__)

APP_NAME = "ytlivechat"
APP_AUTHOR = "ytlivechat"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

# Shared so the keyring is checked once per process
cookie_store = CookieStore()


def get_config_dir() -> Path:
    """Get the configuration directory."""
    path = Path(user_config_dir(APP_NAME, APP_AUTHOR))
    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass
class ChatSettings:
    """Live chat session settings."""

    country: str = "US"  # InnerTube "gl"
    language: str = "en"  # InnerTube "hl"
    top_chat_only: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = 15.0  # seconds
    cookies: str = ""  # Browser cookies for sending and moderation (kept in keyring)

    @property
    def locale(self) -> ChatLocale:
        """Locale built from country/language.

        Raises:
            ConfigurationError: Country or language is empty.
        """
        return ChatLocale(country=self.country, language=self.language)

    @classmethod
    def load(cls, path: Path | None = None) -> "ChatSettings":
        """Load settings from file, falling back to defaults."""
        if path is None:
            path = get_config_dir() / "settings.json"

        settings = cls()
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    settings = cls._from_dict(json.load(f))
            except (json.JSONDecodeError, TypeError, ConfigurationError) as e:
                logger.warning(f"Ignoring invalid settings file {path}: {e}")
                settings = cls()

        stored = cookie_store.load()
        if stored:
            settings.cookies = stored
        elif settings.cookies and cookie_store.save(settings.cookies):
            # Migrate: cookies found in JSON now live in the keyring
            settings.save(path)

        return settings

    def save(self, path: Path | None = None) -> None:
        """Save settings to file."""
        if path is None:
            path = get_config_dir() / "settings.json"

        path.parent.mkdir(parents=True, exist_ok=True)

        use_keyring = cookie_store.save(self.cookies)

        # Atomic write: write to temp file then rename to prevent corruption on crash
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix="settings_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._to_dict(exclude_secrets=use_keyring), f, indent=2)
            os.replace(tmp_path, path)  # Atomic on POSIX
        except OSError:
            try:
                os.unlink(tmp_path)
            except OSError:
                logger.debug(f"Could not remove temp settings file {tmp_path}")
            raise

        if not use_keyring:
            # Fallback: protect the file with restrictive permissions
            restrict_to_owner(path)

    @staticmethod
    def _validate_float(value, default: float, min_val: float, max_val: float) -> float:
        """Validate and constrain a numeric value."""
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        return float(min(max(value, min_val), max_val))

    @classmethod
    def _from_dict(cls, data: dict) -> "ChatSettings":
        """Create settings from a dictionary with validation."""
        if not isinstance(data, dict):
            raise TypeError("settings root must be an object")
        settings = cls()
        settings.country = str(data.get("country", settings.country))
        settings.language = str(data.get("language", settings.language))
        ChatLocale(country=settings.country, language=settings.language)  # raises if empty
        settings.top_chat_only = bool(data.get("top_chat_only", settings.top_chat_only))
        settings.user_agent = str(data.get("user_agent", settings.user_agent))
        settings.request_timeout = cls._validate_float(
            data.get("request_timeout"), settings.request_timeout, 1.0, 120.0
        )
        settings.cookies = str(data.get("cookies", ""))
        return settings

    def _to_dict(self, exclude_secrets: bool = False) -> dict:
        data = {
            "country": self.country,
            "language": self.language,
            "top_chat_only": self.top_chat_only,
            "user_agent": self.user_agent,
            "request_timeout": self.request_timeout,
        }
        if not exclude_secrets:
            data["cookies"] = self.cookies
        return data
