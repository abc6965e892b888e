"""Rich renderables for the dashboard panes."""

from __future__ import annotations

import time

from rich.text import Text

from focus_music.config import AutomationConfig
from focus_music.services.automation_loop import AutomationStatus
from focus_music.services.player_adapter import TrackSnapshot
from focus_music.utils.time_format import format_time_pair_ms
from focus_music.visualization import VisualizationParameters

SWATCH = "██"


def format_status(
    status: AutomationStatus, config: AutomationConfig, *, now: float | None = None
) -> Text:
    """Automation state, the context list in priority order, and the last error."""
    text = Text()
    if status.running:
        text.append("● RUNNING", style="bold green")
    else:
        text.append("○ STOPPED", style="bold red")
    text.append(f"  poll {status.poll_interval_s}s")
    if status.last_switch_at is not None:
        current = time.monotonic() if now is None else now
        ago = max(0, int(current - status.last_switch_at))
        text.append(f"  switched {ago}s ago", style="dim")
    text.append("\n")
    for index, context in enumerate(config.contexts, start=1):
        active = context.name == status.current_context
        marker = "▶" if active else " "
        style = "bold reverse" if active else ""
        text.append(f"{marker} {index} {context.name:<10}", style=style)
        text.append(f" vol {context.volume:>3}%", style="dim")
        if context.name == config.meetings_context:
            text.append(" (pauses)", style="dim")
        text.append("\n")
    if status.pre_meeting_context and status.current_context == config.meetings_context:
        text.append(f"Paused for meeting; was {status.pre_meeting_context}\n", "yellow")
    if status.last_error is not None:
        text.append(f"Last error: {status.last_error}", style="bold red")
    return text


def format_track(track: TrackSnapshot | None) -> Text:
    if track is None:
        return Text("Player unavailable", style="dim")
    if track.player_state == "stopped" or not track.title:
        return Text(f"Player {track.player_state} · vol {track.volume}%", style="dim")
    position, duration = format_time_pair_ms(track.position_ms, track.duration_ms)
    text = Text()
    text.append(track.title, style="bold")
    text.append(f"\n{track.artist}")
    if track.album:
        text.append(f" — {track.album}", style="dim")
    text.append(f"\n{track.player_state} {position} / {duration} · vol {track.volume}%")
    return text


def format_visualization(params: VisualizationParameters, *, width: int = 32) -> Text:
    """Palette swatches plus a band strip coloured by palette slot."""
    text = Text()
    text.append(f"{params.mood.upper()} · {params.tempo} BPM", style="bold")
    text.append(f" · intensity {params.intensity:.2f}\n")
    for color in params.palette:
        text.append(SWATCH, style=color)
    text.append("\n")
    for bar in params.bars[: max(1, width)]:
        glyph = {"bass": "▇", "mid": "▅", "treble": "▂"}[bar.band]
        text.append(glyph, style=params.palette[bar.index % len(params.palette)])
    text.append(f"\n{' · '.join(params.patterns)}", style="dim")
    return text
