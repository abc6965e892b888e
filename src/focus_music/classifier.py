"""Tab-snapshot context classifier.

First-match-wins keyword matching over a fixed priority order. There is no
scoring: when keyword sets of two contexts both match, the context earlier in
the priority order wins.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .config import DEFAULT_CONTEXT, ContextDefinition


@dataclass(frozen=True)
class TabInfo:
    """Metadata for one open browser tab."""

    url: str = ""
    title: str = ""


def build_search_text(tabs: Iterable[TabInfo]) -> str:
    """Join every tab title and URL into one case-folded search string."""
    parts: list[str] = []
    for tab in tabs:
        if tab.title:
            parts.append(tab.title)
        if tab.url:
            parts.append(tab.url)
    return " ".join(parts).casefold()


def classify(
    tabs: Sequence[TabInfo],
    contexts: Sequence[ContextDefinition],
    *,
    default: str = DEFAULT_CONTEXT,
) -> str:
    """Return the name of the highest-priority context matching the tabs."""
    text = build_search_text(tabs)
    if not text:
        return default
    for context in contexts:
        if any(kw and kw.casefold() in text for kw in context.keywords):
            return context.name
    return default
