"""Service events emitted by the automation loop to its subscribers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from focus_music.services.player_adapter import AdapterError, TrackSnapshot

SwitchSource = Literal["auto", "manual", "resume"]


@dataclass(frozen=True)
class ContextChanged:
    """Emitted after the player accepted a context change."""

    previous: str
    current: str
    source: SwitchSource


@dataclass(frozen=True)
class AutomationFailed:
    """Emitted when an adapter call failed and state was left unchanged."""

    context: str
    error: AdapterError


@dataclass(frozen=True)
class TrackUpdated:
    """Emitted when the current track title/artist differs from the last poll."""

    track: TrackSnapshot | None
