from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from exceptions.exceptions import ConfigurationError


load_dotenv()

logger = logging.getLogger(__name__)


def _env_float(key: str, default: float) -> float:
    raw = (os.getenv(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid float for %s=%r, using default %s", key, raw, default)
        return default


def _env_int(key: str, default: int) -> int:
    raw = (os.getenv(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using default %d", key, raw, default)
        return default


class Settings:
    """
    Central configuration for the language tutor.

    Values are loaded once from environment variables (with sensible defaults)
    and then exposed via typed properties. The relay server calls
    validate_for_relay() at startup so that a missing credential is reported
    before the first request rather than on it.
    """

    def __init__(self) -> None:
        # OpenAI / model configuration
        self._openai_api_key = (os.getenv("OPENAI_API_KEY") or "").strip() or None
        self._openai_base_url = os.getenv("OPENAI_BASE_URL") or None
        self._openai_model = os.getenv("TUTOR_OPENAI_MODEL", "gpt-3.5-turbo")

        # Relay server
        self._host = os.getenv("TUTOR_HOST", "127.0.0.1")
        self._port = _env_int("TUTOR_PORT", 5000)
        self._static_dir = Path(os.getenv("TUTOR_STATIC_DIR", "language-tutor"))

        # Client side (terminal chat)
        self._relay_url = os.getenv("TUTOR_RELAY_URL", "http://localhost:5000")
        self._request_timeout = _env_float("TUTOR_REQUEST_TIMEOUT", 30.0)
        self._speech_rate = _env_float("TUTOR_SPEECH_RATE", 0.9)

        self._log_level = os.getenv("TUTOR_LOG_LEVEL", "INFO").upper()

    # ------------------------------------------------------------------
    # OpenAI / model settings
    # ------------------------------------------------------------------

    @property
    def openai_api_key(self) -> str:
        if not self._openai_api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is not set. Please export it in your environment "
                "or define it in a .env file."
            )
        return self._openai_api_key

    @property
    def openai_base_url(self) -> Optional[str]:
        return self._openai_base_url

    @property
    def openai_model(self) -> str:
        return self._openai_model

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def static_dir(self) -> Path:
        return self._static_dir

    # ------------------------------------------------------------------
    # Client
    # ------------------------------------------------------------------

    @property
    def relay_url(self) -> str:
        return self._relay_url

    @property
    def request_timeout(self) -> float:
        return self._request_timeout

    @property
    def speech_rate(self) -> float:
        return self._speech_rate

    @property
    def log_level(self) -> str:
        return self._log_level

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_for_relay(self) -> None:
        """Raise ConfigurationError listing every problem that would stop the relay."""
        errors: List[str] = []

        if not self._openai_api_key:
            errors.append(
                "OPENAI_API_KEY is not set. Please export it in your environment "
                "or define it in a .env file."
            )
        if not (1 <= self._port <= 65535):
            errors.append(f"TUTOR_PORT must be 1-65535, got {self._port}")
        if not self._openai_model.strip():
            errors.append("TUTOR_OPENAI_MODEL must not be empty")

        if errors:
            raise ConfigurationError("Configuration errors:\n  " + "\n  ".join(errors))


settings = Settings()
