"""Runtime configuration normalization helpers.

These helpers keep CLI flag interpretation deterministic across subcommands.
"""

from __future__ import annotations

import math

POLL_INTERVAL_MIN_S = 1
POLL_INTERVAL_MAX_S = 3600
BRIDGE_TIMEOUT_MIN_S = 0.5
BRIDGE_TIMEOUT_MAX_S = 60.0


def resolve_log_level(*, verbose: bool, quiet: bool) -> str:
    """Resolve effective log level from CLI flags.

    Precedence is deterministic: --quiet overrides --verbose.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    return "INFO"


def clamp_poll_interval(value: int | None, default: int) -> int:
    """Clamp a CLI poll-interval override into the supported range."""
    if value is None:
        return default
    return max(POLL_INTERVAL_MIN_S, min(int(value), POLL_INTERVAL_MAX_S))


def clamp_bridge_timeout(value: float | None, default: float) -> float:
    """Clamp a CLI bridge-timeout override; non-finite input keeps the default."""
    if value is None or not math.isfinite(value):
        return default
    return max(BRIDGE_TIMEOUT_MIN_S, min(float(value), BRIDGE_TIMEOUT_MAX_S))
