"""
Configuration management with three-tier precedence system:
1. Default values from codebase
2. Environment variables from .env
3. Explicit overrides (command line flags, constructor arguments)

Precedence: Override > Environment Variables > Defaults
"""

import logging
import os
from typing import Any, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ConfigManager:
    """Manages configuration with three-tier precedence."""

    # Default values (Tier 1 - Codebase defaults)
    DEFAULTS = {
        "SERVER_URL": "http://localhost:5555",
        "SOCKET_TRANSPORTS": "polling,websocket",
        "SOCKET_RECONNECT_ATTEMPTS": "10",
        "SOCKET_RECONNECT_WAIT": "2.0",
        "SOCKET_VERIFY_SSL": "false",
        "REQUEST_TIMEOUT": "10",
        "AUDIO_MODE": "stream",
        "AUDIO_SAMPLE_RATE": "44100",
        "AUDIO_BUFFER_SIZE": "4096",
        "AUDIO_CHUNK_SECONDS": "3.0",
        "LEVEL_HISTORY": "100",
        "TRANSCRIPT_SYNC_INTERVAL": "5.0",
        "ALERT_SEVERITIES": "negative,high",
        "ALERT_COOLDOWN": "10.0",
        "ARCHIVE_DIR": "sessions",
        "OPENAI_API_KEY": "",
        "LLM_MODEL": "gpt-4o-mini",
        "LOG_LEVEL": "INFO",
    }

    @staticmethod
    def get(key: str, override: Optional[Any] = None) -> Any:
        """
        Get configuration value with three-tier precedence.

        Args:
            key: Configuration key
            override: Explicit value (highest priority)

        Returns:
            Configuration value from highest priority source

        Priority:
            1. Override (if provided and not empty)
            2. Environment variable
            3. Default value
        """
        value, _ = ConfigManager.get_display_value(key, override)
        return value

    @staticmethod
    def get_display_value(key: str, override: Optional[Any] = None) -> tuple[Any, str]:
        """
        Get configuration value and its source.

        Returns:
            Tuple of (value, source) where source is 'override', 'env', or 'default'
        """
        if override is not None and override != "":
            return override, "override"

        env_value = os.getenv(key)
        if env_value is not None and env_value != "":
            return env_value, "env"

        return ConfigManager.DEFAULTS.get(key, ""), "default"

    @staticmethod
    def get_int(key: str, override: Optional[Any] = None) -> int:
        """Get a configuration value as an integer."""
        return int(float(ConfigManager.get(key, override)))

    @staticmethod
    def get_float(key: str, override: Optional[Any] = None) -> float:
        """Get a configuration value as a float."""
        return float(ConfigManager.get(key, override))

    @staticmethod
    def get_bool(key: str, override: Optional[Any] = None) -> bool:
        """Get a configuration value as a boolean ('1', 'true', 'yes', 'on')."""
        value = ConfigManager.get(key, override)
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")

    @staticmethod
    def get_list(key: str, override: Optional[Any] = None) -> list[str]:
        """Get a comma separated configuration value as a list of strings."""
        value = ConfigManager.get(key, override)
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return [part.strip() for part in str(value).split(",") if part.strip()]

    @staticmethod
    def is_using_default(key: str, override: Optional[Any] = None) -> bool:
        """Check if configuration is using default value."""
        _, source = ConfigManager.get_display_value(key, override)
        return source == "default"

    @staticmethod
    def is_using_env(key: str, override: Optional[Any] = None) -> bool:
        """Check if configuration is using environment variable."""
        _, source = ConfigManager.get_display_value(key, override)
        return source == "env"

    @staticmethod
    def is_using_override(key: str, override: Optional[Any] = None) -> bool:
        """Check if configuration is using an explicit override."""
        _, source = ConfigManager.get_display_value(key, override)
        return source == "override"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging for the client.

    Socket.IO, Engine.IO and urllib3 are chatty at INFO, so they are kept at
    WARNING unless DEBUG is requested.
    """
    log_level = str(ConfigManager.get("LOG_LEVEL", level)).upper()
    numeric_level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    third_party_level = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in ("socketio", "engineio", "urllib3"):
        logging.getLogger(name).setLevel(third_party_level)
