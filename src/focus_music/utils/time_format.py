"""Time formatting helpers for dashboard and CLI output."""

from __future__ import annotations

import math


def format_time_ms(ms: int, *, force_hours: bool = False) -> str:
    """Format milliseconds as MM:SS, or H:MM:SS past one hour."""
    total_seconds = _coerce_ms(ms) // 1000
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0 or force_hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def format_time_pair_ms(position_ms: int, duration_ms: int) -> tuple[str, str]:
    """Format position and duration with consistent width.

    An unknown (non-positive) duration renders as a dashed placeholder.
    """
    hours_mode = max(_coerce_ms(position_ms), _coerce_ms(duration_ms)) >= 3_600_000
    position = format_time_ms(position_ms, force_hours=hours_mode)
    if _coerce_ms(duration_ms) <= 0:
        return position, "--:--:--" if hours_mode else "--:--"
    return position, format_time_ms(duration_ms, force_hours=hours_mode)


def _coerce_ms(value: int) -> int:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(numeric):
        return 0
    return max(0, int(numeric))
