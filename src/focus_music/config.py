"""Context configuration loading and validation.

Unlike runtime state, configuration is strict: anything malformed raises
`ConfigError` at startup so the automation never runs against a context set it
cannot reason about. The loaded `AutomationConfig` is frozen for the process
lifetime.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT = "default"
MEETINGS_CONTEXT = "meetings"
DEFAULT_POLL_INTERVAL_S = 30
DEFAULT_RESUME_DELAY_S = 5
DEFAULT_PLAYER_APP = "Spotify"
DEFAULT_BRIDGE_TIMEOUT_S = 5.0
PLAYLIST_PLACEHOLDER = "REPLACE_WITH_YOUR"


class ConfigError(ValueError):
    """Raised when context configuration cannot be used."""


@dataclass(frozen=True)
class ContextDefinition:
    """One named work mode and the playback it maps to."""

    name: str
    keywords: tuple[str, ...]
    volume: int
    playlist_id: str
    description: str = ""

    @property
    def playlist_configured(self) -> bool:
        return bool(self.playlist_id) and PLAYLIST_PLACEHOLDER not in self.playlist_id


@dataclass(frozen=True)
class AutomationConfig:
    """Validated configuration; `contexts` is ordered by priority."""

    contexts: tuple[ContextDefinition, ...]
    poll_interval_s: int = DEFAULT_POLL_INTERVAL_S
    min_dwell_s: int = DEFAULT_POLL_INTERVAL_S
    resume_delay_s: int = DEFAULT_RESUME_DELAY_S
    default_context: str = DEFAULT_CONTEXT
    meetings_context: str = MEETINGS_CONTEXT
    player_app: str = DEFAULT_PLAYER_APP
    bridge_timeout_s: float = DEFAULT_BRIDGE_TIMEOUT_S
    launch_player: bool = False
    _by_name: dict[str, ContextDefinition] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_by_name", {context.name: context for context in self.contexts}
        )

    @property
    def priority_order(self) -> tuple[str, ...]:
        return tuple(context.name for context in self.contexts)

    def get(self, name: str) -> ContextDefinition | None:
        return self._by_name.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name


DEFAULT_CONTEXTS: dict[str, dict[str, Any]] = {
    "coding": {
        "keywords": [
            "github",
            "stackoverflow",
            "dev",
            "code",
            "programming",
            "vscode",
            "cursor",
            "terminal",
        ],
        "volume": 60,
        "playlistId": f"spotify:playlist:{PLAYLIST_PLACEHOLDER}_CODING_PLAYLIST_ID",
        "description": "Upbeat music for coding sessions",
    },
    "focus": {
        "keywords": [
            "docs",
            "reading",
            "research",
            "learning",
            "documentation",
            "tutorial",
            "medium",
        ],
        "volume": 40,
        "playlistId": f"spotify:playlist:{PLAYLIST_PLACEHOLDER}_FOCUS_PLAYLIST_ID",
        "description": "Ambient music for deep focus and reading",
    },
    "meetings": {
        "keywords": ["zoom", "meet", "teams", "calendar", "call", "webex"],
        "volume": 20,
        "playlistId": f"spotify:playlist:{PLAYLIST_PLACEHOLDER}_AMBIENT_PLAYLIST_ID",
        "description": "Music pauses while a meeting is open",
    },
    "creative": {
        "keywords": ["figma", "design", "adobe", "sketch", "photoshop", "canva"],
        "volume": 70,
        "playlistId": f"spotify:playlist:{PLAYLIST_PLACEHOLDER}_CREATIVE_PLAYLIST_ID",
        "description": "Inspiring music for creative work",
    },
    "default": {
        "keywords": [],
        "volume": 50,
        "playlistId": f"spotify:playlist:{PLAYLIST_PLACEHOLDER}_DEFAULT_PLAYLIST_ID",
        "description": "General work music",
    },
}
DEFAULT_PRIORITY_ORDER = ["meetings", "coding", "focus", "creative", "default"]


def default_config_data() -> dict[str, Any]:
    """Return the built-in configuration document."""
    return {
        "contexts": json.loads(json.dumps(DEFAULT_CONTEXTS)),
        "priorityOrder": list(DEFAULT_PRIORITY_ORDER),
        "pollIntervalSeconds": DEFAULT_POLL_INTERVAL_S,
        "resumeDelaySeconds": DEFAULT_RESUME_DELAY_S,
    }


def load_config(path: Path | None) -> AutomationConfig:
    """Load and validate configuration; a missing file yields the defaults."""
    if path is None:
        return parse_config(default_config_data())
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("Config file missing at %s; using built-in contexts.", path)
        return parse_config(default_config_data())
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    try:
        data = json.loads(raw, object_pairs_hook=_reject_duplicate_keys)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc
    return parse_config(data)


def write_default_config(path: Path) -> None:
    """Write the built-in configuration document for the user to edit."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(default_config_data(), indent=2) + "\n", "utf-8")


def parse_config(data: object) -> AutomationConfig:
    """Validate an untyped config document into `AutomationConfig`."""
    if not isinstance(data, Mapping):
        raise ConfigError("Config root must be a JSON object.")
    raw_contexts = data.get("contexts")
    if not isinstance(raw_contexts, Mapping) or not raw_contexts:
        raise ConfigError("'contexts' must be a non-empty object.")
    order = data.get("priorityOrder")
    if not isinstance(order, list) or not all(isinstance(n, str) for n in order):
        raise ConfigError("'priorityOrder' must be a list of context names.")

    seen: set[str] = set()
    for name in order:
        if name in seen:
            raise ConfigError(f"'priorityOrder' lists {name!r} more than once.")
        if name not in raw_contexts:
            raise ConfigError(f"'priorityOrder' references unknown context {name!r}.")
        seen.add(name)
    missing = [name for name in raw_contexts if name not in seen]
    if missing:
        raise ConfigError(
            f"Contexts missing from 'priorityOrder': {', '.join(sorted(missing))}."
        )
    if DEFAULT_CONTEXT not in seen:
        raise ConfigError(f"'priorityOrder' must include {DEFAULT_CONTEXT!r}.")

    contexts = tuple(_parse_context(name, raw_contexts[name]) for name in order)
    poll_interval_s = _int_field(data, "pollIntervalSeconds", DEFAULT_POLL_INTERVAL_S)
    if poll_interval_s < 1:
        raise ConfigError("'pollIntervalSeconds' must be >= 1.")
    min_dwell_s = _int_field(data, "minDwellSeconds", poll_interval_s)
    resume_delay_s = _int_field(data, "resumeDelaySeconds", DEFAULT_RESUME_DELAY_S)
    if min_dwell_s < 0 or resume_delay_s < 0:
        raise ConfigError("Dwell and resume delays must be >= 0.")
    player_app = data.get("player", DEFAULT_PLAYER_APP)
    if not isinstance(player_app, str) or not player_app.strip() or '"' in player_app:
        raise ConfigError("'player' must be a non-empty application name.")
    bridge_timeout_s = data.get("bridgeTimeoutSeconds", DEFAULT_BRIDGE_TIMEOUT_S)
    if (
        isinstance(bridge_timeout_s, bool)
        or not isinstance(bridge_timeout_s, (int, float))
        or bridge_timeout_s <= 0
    ):
        raise ConfigError("'bridgeTimeoutSeconds' must be a positive number.")
    launch_player = data.get("launchPlayer", False)
    if not isinstance(launch_player, bool):
        raise ConfigError("'launchPlayer' must be true or false.")

    config = AutomationConfig(
        contexts=contexts,
        poll_interval_s=poll_interval_s,
        min_dwell_s=min_dwell_s,
        resume_delay_s=resume_delay_s,
        player_app=player_app.strip(),
        bridge_timeout_s=float(bridge_timeout_s),
        launch_player=launch_player,
    )
    for first, second, keyword in keyword_overlaps(config):
        logger.warning(
            "Keyword %r is shared by contexts %r and %r; %r wins by priority.",
            keyword,
            first,
            second,
            first,
        )
    return config


def keyword_overlaps(config: AutomationConfig) -> list[tuple[str, str, str]]:
    """Return `(higher, lower, keyword)` where a lower context's keyword is shadowed.

    A keyword of a lower-priority context is shadowed when a higher-priority
    keyword is a substring of it, since any text containing the lower keyword
    then matches the higher context first.
    """
    overlaps: list[tuple[str, str, str]] = []
    contexts = config.contexts
    for index, higher in enumerate(contexts):
        for lower in contexts[index + 1 :]:
            for keyword in lower.keywords:
                if any(candidate in keyword for candidate in higher.keywords):
                    overlaps.append((higher.name, lower.name, keyword))
    return overlaps


def _parse_context(name: str, raw: object) -> ContextDefinition:
    if not name.strip():
        raise ConfigError("Context names must be non-empty.")
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Context {name!r} must be an object.")
    keywords = raw.get("keywords", [])
    if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
        raise ConfigError(f"Context {name!r}: 'keywords' must be a list of strings.")
    volume = raw.get("volume")
    if isinstance(volume, bool) or not isinstance(volume, int):
        raise ConfigError(f"Context {name!r}: 'volume' must be an integer.")
    if not 0 <= volume <= 100:
        raise ConfigError(f"Context {name!r}: 'volume' must be within 0..100.")
    playlist_id = raw.get("playlistId", raw.get("playlist_uri"))
    if not isinstance(playlist_id, str):
        raise ConfigError(f"Context {name!r}: 'playlistId' must be a string.")
    description = raw.get("description", "")
    if not isinstance(description, str):
        raise ConfigError(f"Context {name!r}: 'description' must be a string.")
    folded = tuple(
        dict.fromkeys(k.strip().casefold() for k in keywords if k.strip())
    )
    return ContextDefinition(
        name=name,
        keywords=folded,
        volume=volume,
        playlist_id=playlist_id.strip(),
        description=description,
    )


def _int_field(data: Mapping[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key!r} must be an integer.")
    return value


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise ConfigError(f"Duplicate key {key!r} in config file.")
        result[key] = value
    return result
