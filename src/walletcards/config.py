"""Configuration for the WalletCards client and terminal front-end."""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Session storage for the terminal front-end
SESSION_DIR = Path.home() / ".walletcards"
SESSION_FILE = SESSION_DIR / "session.json"


class WalletCardsSettings(BaseSettings):
    """Main WalletCards configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WALLETCARDS_",
        env_file=".env",
        extra="ignore",
    )

    # Card-issuing backend
    api_base_url: str = "https://api.walletcards.app/api/"
    public_key: SecretStr = SecretStr("")
    secret_key: SecretStr = SecretStr("")

    # Timeouts (seconds)
    connect_timeout: float = Field(default=15.0, gt=0)
    write_timeout: float = Field(default=15.0, gt=0)
    read_timeout: float = Field(default=30.0, gt=0)

    # Identity provider
    firebase_api_key: SecretStr = SecretStr("")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_json: bool = False

    @field_validator("api_base_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        """Endpoint names are joined onto the base URL as relative paths."""
        return v if v.endswith("/") else v + "/"

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @property
    def has_credentials(self) -> bool:
        return bool(
            self.public_key.get_secret_value() and self.secret_key.get_secret_value()
        )

    def timeouts(self):
        """Build the gateway timeout configuration from these settings."""
        from .client import TimeoutConfig

        return TimeoutConfig(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.write_timeout,
        )


@lru_cache
def get_settings() -> WalletCardsSettings:
    """Return the process-wide settings, loaded once."""
    return WalletCardsSettings()


def ensure_session_dir() -> Path:
    """Ensure the session directory exists."""
    SESSION_DIR.mkdir(parents=True, exist_ok=True)
    return SESSION_DIR


def load_session(path: Path | None = None) -> Dict[str, Any]:
    """Load the stored session (signed-in user) if there is one."""
    session_file = path or SESSION_FILE
    if not session_file.exists():
        return {}
    try:
        with open(session_file) as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable session file %s: %s", session_file, exc)
        return {}
    return data if isinstance(data, dict) else {}


def save_session(session: Dict[str, Any], path: Path | None = None) -> None:
    """Persist the session with owner-only permissions."""
    session_file = path or SESSION_FILE
    if path is None:
        ensure_session_dir()
    else:
        session_file.parent.mkdir(parents=True, exist_ok=True)

    with open(session_file, "w") as f:
        json.dump(session, f, indent=2)

    session_file.chmod(0o600)


def clear_session(path: Path | None = None) -> None:
    """Remove the stored session."""
    session_file = path or SESSION_FILE
    if session_file.exists():
        session_file.unlink()
