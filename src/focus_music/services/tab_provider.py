"""Tab snapshot providers consumed by the automation loop.

Live browser enumeration lives outside this package; a browser helper (or the
user) writes the open tabs to a JSON file which `JsonFileTabProvider` reads on
every poll. The file is read tolerantly: a missing or corrupt snapshot means
"no tabs", which classifies to the default context.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from focus_music.classifier import TabInfo

logger = logging.getLogger(__name__)


class TabSnapshotProvider(Protocol):
    """Source of the currently open browser tabs."""

    def get_tabs(self) -> list[TabInfo]: ...


class StaticTabProvider:
    """Provider returning a fixed, replaceable tab list."""

    def __init__(self, tabs: Iterable[TabInfo] = ()) -> None:
        self._tabs = list(tabs)

    def set_tabs(self, tabs: Iterable[TabInfo]) -> None:
        self._tabs = list(tabs)

    def get_tabs(self) -> list[TabInfo]:
        return list(self._tabs)


class JsonFileTabProvider:
    """Provider reading `[{"url": ..., "title": ...}, ...]` from a file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def get_tabs(self) -> list[TabInfo]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("Tab snapshot %s missing; treating as no tabs.", self._path)
            return []
        except OSError as exc:
            logger.warning("Failed to read tab snapshot %s: %s", self._path, exc)
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Tab snapshot %s is invalid JSON; ignoring.", self._path)
            return []
        return parse_tabs(data)


def parse_tabs(data: object) -> list[TabInfo]:
    """Coerce a decoded JSON document into tabs, skipping malformed entries.

    Accepts a bare list or an object with a ``tabs`` list. Plain strings are
    treated as URLs.
    """
    if isinstance(data, dict):
        data = data.get("tabs")
    if not isinstance(data, list):
        return []
    tabs: list[TabInfo] = []
    for item in data:
        if isinstance(item, str):
            tabs.append(TabInfo(url=item))
            continue
        if not isinstance(item, dict):
            continue
        url = item.get("url")
        title = item.get("title")
        tabs.append(
            TabInfo(
                url=url if isinstance(url, str) else "",
                title=title if isinstance(title, str) else "",
            )
        )
    return tabs
