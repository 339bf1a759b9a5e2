"""Utility functions for reading configuration files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml

from chatnet.config.configuration import register_setting
from chatnet.config.network import Platform

# Constants
SETTINGS_FILE = "settings.yaml"
MISSING_MESSAGE = "Missing required environment variable: {}"
NOT_GIVEN = object()

# Built-in settings are registered here so that applications embedding the
# client can list them next to their own via :func:`register_setting`.

register_setting(
    package_name="chatnet",
    env_var="CHATNET_BASE_URL",
    group="Network",
    description="Primary backend base URL tried first for every request",
)
register_setting(
    package_name="chatnet",
    env_var="CHATNET_FALLBACK_URLS",
    group="Network",
    description=(
        "Comma separated list of fallback base URLs, tried in order when the "
        "primary backend cannot be reached"
    ),
)
register_setting(
    package_name="chatnet",
    env_var="CHATNET_PLATFORM",
    group="Network",
    description="Runtime platform used to pick timeouts, retry counts and headers",
    enum=[p.value for p in Platform],
)
register_setting(
    package_name="chatnet",
    env_var="CHATNET_IS_EMULATOR",
    group="Network",
    description="Set to 1 when running inside an emulator or simulator",
)
register_setting(
    package_name="chatnet",
    env_var="CHATNET_OFFLINE_MODE",
    group="Network",
    description=(
        "Set to 0 to disable the canned offline responses returned for login "
        "and registration when no backend is reachable"
    ),
)
register_setting(
    package_name="chatnet",
    env_var="CHATNET_QUEUE_CAPACITY",
    group="Realtime",
    description="Maximum number of outbound realtime events buffered while disconnected",
)
register_setting(
    package_name="chatnet",
    env_var="LOG_LEVEL",
    group="Logging",
    description="Log level for the chatnet loggers",
    enum=["DEBUG", "INFO", "WARNING", "ERROR"],
)


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def get_system_file_path(filename: str) -> Path:
    """Return the path to the configuration file for the current OS."""
    import platform

    os_name = platform.system()
    if os_name in {"Linux", "Darwin"}:
        return Path.home() / ".config" / "chatnet" / filename
    elif os_name == "Windows":
        appdata = os.getenv("APPDATA")
        if appdata is not None:
            return Path(appdata) / "chatnet" / filename
        return Path("data") / filename
    return Path("data") / filename


# ---------------------------------------------------------------------------
# Settings helpers
# ---------------------------------------------------------------------------


def load_settings(path: Path | None = None) -> Dict[str, Any]:
    """Load settings from the YAML settings file, if present."""
    settings_file = path or get_system_file_path(SETTINGS_FILE)
    if not settings_file.exists():
        return {}
    with open(settings_file, "r") as f:
        settings = yaml.safe_load(f) or {}
    if not isinstance(settings, dict):
        raise ValueError(f"{settings_file} must contain a mapping, got {type(settings).__name__}")
    return settings


def get_value(
    key: str,
    settings: Dict[str, Any],
    default_env: Dict[str, Any],
    default: Any = NOT_GIVEN,
) -> Any:
    """Retrieve a configuration value from the environment, settings or defaults."""
    value = os.environ.get(key)
    if value is None or value == "":
        value = settings.get(key)

    if value is None:
        value = default_env.get(key, default)

    if value is not NOT_GIVEN:
        return value
    raise KeyError(MISSING_MESSAGE.format(key))
