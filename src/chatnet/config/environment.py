"""
Environment Configuration Management Module

This module provides centralized configuration for the chatnet network layer
through the Environment class. Values are read from:

- Environment variables
- Settings file (settings.yaml)
- Default values

Environment variables take precedence over the settings file, which takes
precedence over the defaults below. The endpoint table and the platform are
static configuration: they are read once when the network layer is composed
and never change for the lifetime of the process.
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from chatnet.config.network import Platform
from chatnet.config.settings import get_value, load_settings

if TYPE_CHECKING:
    from chatnet.net.endpoints import EndpointTable

DEFAULT_BASE_URL = "https://chat-app-aqhyf8fhaefzgvha.eastasia-01.azurewebsites.net"

DEFAULT_FALLBACK_URLS = [
    DEFAULT_BASE_URL,
    "http://localhost:8000",
    "http://192.168.1.13:8000",
]

DEFAULT_ENV = {
    "CHATNET_BASE_URL": DEFAULT_BASE_URL,
    "CHATNET_FALLBACK_URLS": ",".join(DEFAULT_FALLBACK_URLS),
    "CHATNET_PLATFORM": Platform.DESKTOP.value,
    "CHATNET_IS_EMULATOR": "0",
    "CHATNET_OFFLINE_MODE": "1",
    "CHATNET_QUEUE_CAPACITY": "1000",
    "LOG_LEVEL": None,
}

_FALSY = ("0", "false", "no", "off", "")


def load_dotenv_files():
    """Load environment variables from .env files based on current environment."""
    from dotenv import load_dotenv

    env_name = os.environ.get("ENV", "development")
    cwd = Path.cwd()

    # Later files override earlier ones only for keys not already set
    env_files = [
        cwd / ".env",
        cwd / f".env.{env_name}",
        cwd / f".env.{env_name}.local",
    ]

    for env_file in env_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)


class Environment(object):
    """
    Central access to chatnet configuration values.

    All accessors are class methods so the application's composition root can
    read configuration without constructing anything. Nothing here holds
    network state; the router and realtime client are built from these values
    and owned by the caller.
    """

    settings: Optional[Dict[str, Any]] = None

    @classmethod
    def load_settings(cls):
        load_dotenv_files()
        cls.settings = load_settings()

    @classmethod
    def get_settings(cls) -> Dict[str, Any]:
        if cls.settings is None:
            cls.load_settings()
        assert cls.settings is not None
        return cls.settings

    @classmethod
    def reset(cls):
        """Forget cached settings so the next access reloads them."""
        cls.settings = None

    @classmethod
    def get(cls, key: str, default: Any = None):
        return get_value(key, cls.get_settings(), DEFAULT_ENV, default)

    @classmethod
    def _get_bool_setting(cls, key: str) -> bool:
        value = cls.get(key)
        if value is None:
            return False
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() not in _FALSY

    @classmethod
    def _get_int_setting(cls, key: str, default: int) -> int:
        value = cls.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    @classmethod
    def get_platform(cls) -> Platform:
        """The runtime platform the client is running on."""
        return Platform.parse(cls.get("CHATNET_PLATFORM"))

    @classmethod
    def is_emulator(cls) -> bool:
        """Whether the client runs in an emulator or simulator."""
        return cls._get_bool_setting("CHATNET_IS_EMULATOR")

    @classmethod
    def get_base_url(cls) -> str:
        return str(cls.get("CHATNET_BASE_URL")).strip()

    @classmethod
    def get_fallback_urls(cls) -> list[str]:
        raw = cls.get("CHATNET_FALLBACK_URLS")
        if raw is None:
            return []
        if isinstance(raw, (list, tuple)):
            items = [str(u) for u in raw]
        else:
            items = str(raw).split(",")
        return [u.strip() for u in items if u.strip()]

    @classmethod
    def get_endpoint_table(cls) -> "EndpointTable":
        """Build the ordered endpoint table from the configured URLs."""
        from chatnet.net.endpoints import EndpointTable

        return EndpointTable.from_urls(cls.get_base_url(), cls.get_fallback_urls())

    @classmethod
    def is_offline_mode_enabled(cls) -> bool:
        """Whether canned offline responses may stand in for an unreachable backend."""
        return cls._get_bool_setting("CHATNET_OFFLINE_MODE")

    @classmethod
    def get_queue_capacity(cls) -> int:
        return cls._get_int_setting("CHATNET_QUEUE_CAPACITY", 1000)

    @classmethod
    def get_log_level(cls):
        """Return desired log level string.

        Priority:
        1) Explicit LOG_LEVEL env
        2) If DEBUG env is truthy, return "DEBUG"
        3) CHATNET_LOG_LEVEL env (default "INFO")
        """
        level = os.getenv("LOG_LEVEL")
        if level:
            return str(level).upper()
        debug_env = os.getenv("DEBUG")
        if debug_env and debug_env.lower() not in _FALSY:
            return "DEBUG"
        return os.getenv("CHATNET_LOG_LEVEL", "INFO").upper()
