"""Project version source of truth."""

from __future__ import annotations

import platform

__all__ = ["PROJECT_NAME", "__version__", "build_help_epilog"]

# Manually updated for each release.
__version__ = "0.3.0"
PROJECT_NAME = "focus-music"


def build_help_epilog() -> str:
    return (
        f"Config: contexts.json in the per-user config directory\n"
        f"Platform: {platform.platform()}\n"
        f"Version: {__version__}"
    )
