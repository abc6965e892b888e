"""Per-user locations for the context config, tab snapshot and logs."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from platformdirs import AppDirs

DEFAULT_APP_NAME = "focus-music"
CONTEXTS_FILE_NAME = "contexts.json"
TABS_FILE_NAME = "tabs.json"


@lru_cache(maxsize=4)
def get_app_dirs(app_name: str = DEFAULT_APP_NAME) -> AppDirs:
    return AppDirs(app_name)


def _existing(path: str | Path) -> Path:
    resolved = Path(path)
    resolved.mkdir(parents=True, exist_ok=True)
    return resolved


def config_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Directory holding `contexts.json`; created on first use."""
    return _existing(get_app_dirs(app_name).user_config_dir)


def data_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Directory for the tab snapshot and logs; created on first use."""
    return _existing(get_app_dirs(app_name).user_data_dir)


def log_dir(app_name: str = DEFAULT_APP_NAME) -> Path:
    return _existing(data_dir(app_name) / "logs")


def contexts_path(app_name: str = DEFAULT_APP_NAME) -> Path:
    return config_dir(app_name) / CONTEXTS_FILE_NAME


def tabs_path(app_name: str = DEFAULT_APP_NAME) -> Path:
    """Tab snapshot a browser helper rewrites; read on every poll."""
    return data_dir(app_name) / TABS_FILE_NAME
