"""Desktop media player adapter over the AppleScript bridge.

Every public method builds one AppleScript command, runs it through the
`ScriptingBridge` with a bounded timeout, and parses the textual reply into a
typed value. Failures are classified into `AdapterError` values and returned in
an `AdapterResult`; nothing raises past this module's public methods.

Reply formats are fixed by the scripts built here:

- every script is wrapped in an ``application "<player>" is running`` guard that
  returns `NOT_RUNNING_SENTINEL` instead of letting AppleScript launch the
  player implicitly;
- track replies are seven fields joined by ASCII 31 (unit separator):
  ``state, title, artist, album, volume, duration_ms, position_s``;
- playlist replies are two unit-separated lists (names, ids) joined by ASCII 30.
"""

from __future__ import annotations

import logging
import math
import re
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from focus_music.config import PLAYLIST_PLACEHOLDER, AutomationConfig, ContextDefinition

from .scripting_bridge import BridgeReply, ScriptingBridge

logger = logging.getLogger(__name__)

T = TypeVar("T")

AdapterErrorKind = Literal[
    "player_not_running",
    "invalid_playlist",
    "permission_denied",
    "timeout",
    "parse_error",
    "adapter_error",
]
PlayerStatus = Literal["playing", "paused", "stopped"]
Operation = Literal["track", "play", "volume", "pause", "resume", "playlists", "launch"]

NOT_RUNNING_SENTINEL = "__FOCUS_MUSIC_NOT_RUNNING__"
FIELD_SEPARATOR = "\x1f"
LIST_SEPARATOR = "\x1e"
TRACK_FIELD_COUNT = 7
VOLUME_MIN = 0
VOLUME_MAX = 100
DEFAULT_LAUNCH_WAIT_S = 3.0

_PLAYER_STATES: frozenset[str] = frozenset({"playing", "paused", "stopped"})
_UNSAFE_LITERAL_CHARS = frozenset('"\\\r\n' + FIELD_SEPARATOR + LIST_SEPARATOR)
_ERROR_NUMBER_RE = re.compile(r"\((-\d+)\)\s*$")
_NOT_RUNNING_CODES = {"-600", "-609"}
_PERMISSION_CODES = {"-1743", "-1719", "-10004"}
_MISSING_OBJECT_CODES = {"-1728", "-1700", "-1708"}
_TIMEOUT_CODES = {"-1712"}


@dataclass(frozen=True)
class AdapterError:
    """Classified adapter failure; `raw` keeps the unparsed bridge text."""

    kind: AdapterErrorKind
    message: str
    raw: str = ""

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass(frozen=True)
class AdapterResult(Generic[T]):
    """Either a success payload or a classified error."""

    value: T | None = None
    error: AdapterError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> AdapterResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: AdapterError) -> AdapterResult[T]:
        return cls(error=error)


@dataclass(frozen=True)
class TrackSnapshot:
    """Player state and current-track metadata captured by one call."""

    title: str
    artist: str
    album: str
    volume: int
    duration_ms: int
    position_ms: int
    player_state: PlayerStatus = "playing"


@dataclass(frozen=True)
class PlaylistInfo:
    name: str
    uri: str


@dataclass(frozen=True)
class SwitchResult:
    """Outcome of a context switch.

    `volume_error` is set when the playlist started but the volume step failed;
    the playlist change is not rolled back.
    """

    context: str
    playlist_id: str
    volume: int
    volume_error: AdapterError | None = None

    @property
    def partial(self) -> bool:
        return self.volume_error is not None


def clamp_volume(volume: float) -> int:
    """Clamp and round a requested volume into the player's 0..100 range."""
    return max(VOLUME_MIN, min(int(round(volume)), VOLUME_MAX))


def escape_applescript(value: str) -> str:
    """Escape a value for use inside an AppleScript string literal."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def validate_playlist_id(playlist_id: str) -> AdapterError | None:
    """Return an `invalid_playlist` error for unusable playlist identifiers."""
    if not playlist_id.strip():
        return AdapterError("invalid_playlist", "Playlist identifier is empty.")
    if PLAYLIST_PLACEHOLDER in playlist_id:
        return AdapterError(
            "invalid_playlist",
            "Playlist identifier is still the placeholder; edit contexts.json.",
            raw=playlist_id,
        )
    if any(char in _UNSAFE_LITERAL_CHARS for char in playlist_id):
        return AdapterError(
            "invalid_playlist",
            "Playlist identifier contains quote, backslash or control characters.",
            raw=playlist_id,
        )
    return None


def build_script(player_app: str, body: str) -> str:
    """Wrap a `tell` body in the not-running guard."""
    app = escape_applescript(player_app)
    indented = "\n".join(f"\t\t{line}" for line in body.strip().splitlines())
    return (
        f'if application "{app}" is running then\n'
        f'\ttell application "{app}"\n'
        f"{indented}\n"
        "\tend tell\n"
        "else\n"
        f'\treturn "{NOT_RUNNING_SENTINEL}"\n'
        "end if\n"
    )


TRACK_BODY = """
set sep to character id 31
set playerState to player state as string
set vol to sound volume as string
if playerState is "stopped" then
	return playerState & sep & "" & sep & "" & sep & "" & sep & vol & sep & "0" & sep & "0"
end if
set t to current track
return playerState & sep & (name of t) & sep & (artist of t) & sep & (album of t) & sep & vol & sep & ((duration of t) as string) & sep & (player position as string)
"""

PLAYLISTS_BODY = """
set AppleScript's text item delimiters to character id 31
set playlistNames to (name of every user playlist) as string
set playlistIds to (id of every user playlist) as string
return playlistNames & (character id 30) & playlistIds
"""


def play_body(playlist_id: str) -> str:
    return f'play track "{escape_applescript(playlist_id)}"\nreturn player state as string'


def volume_body(volume: int) -> str:
    return f"set sound volume to {volume}\nreturn sound volume as string"


PAUSE_BODY = "pause\nreturn player state as string"
RESUME_BODY = "play\nreturn player state as string"


def classify_failure(reply: BridgeReply, operation: Operation) -> AdapterError | None:
    """Map a bridge reply to an error, or None when the command succeeded."""
    if reply.stdout.strip() == NOT_RUNNING_SENTINEL:
        return AdapterError("player_not_running", "Player is not running.")
    if reply.returncode == 0:
        return None
    raw = (reply.stderr or reply.stdout).strip()
    lowered = raw.lower().replace("’", "'")
    match = _ERROR_NUMBER_RE.search(raw)
    code = match.group(1) if match else None
    if code in _NOT_RUNNING_CODES or "isn't running" in lowered:
        return AdapterError("player_not_running", "Player is not running.", raw=raw)
    if (
        code in _PERMISSION_CODES
        or "not authorized" in lowered
        or "not allowed" in lowered
        or "privilege violation" in lowered
    ):
        return AdapterError(
            "permission_denied",
            "Automation permission denied; allow it in System Settings > "
            "Privacy & Security > Automation.",
            raw=raw,
        )
    if code in _TIMEOUT_CODES or "timed out" in lowered:
        return AdapterError("timeout", "Player did not answer in time.", raw=raw)
    if operation == "play" and (
        code in _MISSING_OBJECT_CODES or "can't get" in lowered or "invalid" in lowered
    ):
        return AdapterError("invalid_playlist", "Player rejected the playlist.", raw=raw)
    message = raw.splitlines()[-1] if raw else f"bridge exited {reply.returncode}"
    return AdapterError("adapter_error", message, raw=raw)


def parse_player_state(text: str) -> PlayerStatus | None:
    state = text.strip().lower()
    if state in _PLAYER_STATES:
        return state  # type: ignore[return-value]
    return None


def parse_track(text: str) -> TrackSnapshot | None:
    """Parse a track reply; None when the reply does not match the format."""
    fields = text.rstrip("\r\n").split(FIELD_SEPARATOR)
    if len(fields) != TRACK_FIELD_COUNT:
        return None
    state_text, title, artist, album, volume_text, duration_text, position_text = fields
    state = parse_player_state(state_text)
    volume = _parse_number(volume_text)
    duration = _parse_number(duration_text)
    position = _parse_number(position_text)
    if state is None or volume is None or duration is None or position is None:
        return None
    return TrackSnapshot(
        title=title.strip(),
        artist=artist.strip(),
        album=album.strip(),
        volume=clamp_volume(volume),
        duration_ms=max(0, int(duration)),
        position_ms=max(0, int(round(position * 1000))),
        player_state=state,
    )


def parse_playlists(text: str) -> list[PlaylistInfo] | None:
    stripped = text.rstrip("\r\n")
    if not stripped:
        return []
    if stripped.count(LIST_SEPARATOR) != 1:
        return None
    names_text, ids_text = stripped.split(LIST_SEPARATOR)
    names = names_text.split(FIELD_SEPARATOR) if names_text else []
    ids = ids_text.split(FIELD_SEPARATOR) if ids_text else []
    if len(names) != len(ids):
        return None
    return [
        PlaylistInfo(name=name.strip(), uri=uri.strip())
        for name, uri in zip(names, ids)
    ]


def _parse_number(text: str) -> float | None:
    # AppleScript renders reals with the user's locale decimal mark.
    normalized = text.strip().replace(",", ".")
    if not normalized:
        return None
    try:
        number = float(normalized)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


class PlayerAdapter:
    """Drives one desktop player through a scripting bridge."""

    def __init__(
        self,
        bridge: ScriptingBridge,
        *,
        player_app: str = "Spotify",
        timeout_s: float = 5.0,
        launch_player: bool = False,
        launch_wait_s: float = DEFAULT_LAUNCH_WAIT_S,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        self._bridge = bridge
        self._player_app = player_app
        self._timeout_s = timeout_s
        self._launch_player = launch_player
        self._launch_wait_s = max(0.0, launch_wait_s)
        self._sleep = sleep

    @classmethod
    def from_config(
        cls, config: AutomationConfig, bridge: ScriptingBridge
    ) -> PlayerAdapter:
        return cls(
            bridge,
            player_app=config.player_app,
            timeout_s=config.bridge_timeout_s,
            launch_player=config.launch_player,
        )

    @property
    def player_app(self) -> str:
        return self._player_app

    def get_current_track(self) -> AdapterResult[TrackSnapshot]:
        reply = self._execute("track", TRACK_BODY)
        if isinstance(reply, AdapterError):
            return AdapterResult.failure(reply)
        track = parse_track(reply.stdout)
        if track is None:
            return AdapterResult.failure(_parse_error("track", reply))
        return AdapterResult.success(track)

    def switch_to_context(self, context: ContextDefinition) -> AdapterResult[SwitchResult]:
        invalid = validate_playlist_id(context.playlist_id)
        if invalid is not None:
            return AdapterResult.failure(invalid)
        played = self._play_playlist(context.playlist_id)
        if (
            not played.ok
            and self._launch_player
            and played.error is not None
            and played.error.kind == "player_not_running"
        ):
            launched = self._launch()
            if launched is not None:
                return AdapterResult.failure(launched)
            played = self._play_playlist(context.playlist_id)
        if played.error is not None:
            return AdapterResult.failure(played.error)

        volume = self.set_volume(context.volume)
        if volume.error is not None:
            logger.warning(
                "Context %s started but volume failed: %s",
                context.name,
                volume.error,
                extra={"context_name": context.name, "kind": volume.error.kind},
            )
        return AdapterResult.success(
            SwitchResult(
                context=context.name,
                playlist_id=context.playlist_id,
                volume=volume.value if volume.value is not None else context.volume,
                volume_error=volume.error,
            )
        )

    def set_volume(self, volume: float) -> AdapterResult[int]:
        if not math.isfinite(volume):
            return AdapterResult.failure(
                AdapterError(
                    "adapter_error", f"Volume must be a finite number, got {volume!r}."
                )
            )
        reply = self._execute("volume", volume_body(clamp_volume(volume)))
        if isinstance(reply, AdapterError):
            return AdapterResult.failure(reply)
        parsed = _parse_number(reply.stdout)
        if parsed is None:
            return AdapterResult.failure(_parse_error("volume", reply))
        return AdapterResult.success(clamp_volume(parsed))

    def pause(self) -> AdapterResult[PlayerStatus]:
        return self._transport("pause", PAUSE_BODY)

    def resume(self) -> AdapterResult[PlayerStatus]:
        return self._transport("resume", RESUME_BODY)

    def list_playlists(self) -> AdapterResult[list[PlaylistInfo]]:
        reply = self._execute("playlists", PLAYLISTS_BODY)
        if isinstance(reply, AdapterError):
            return AdapterResult.failure(reply)
        playlists = parse_playlists(reply.stdout)
        if playlists is None:
            return AdapterResult.failure(_parse_error("playlists", reply))
        return AdapterResult.success(playlists)

    def _play_playlist(self, playlist_id: str) -> AdapterResult[PlayerStatus]:
        return self._transport("play", play_body(playlist_id))

    def _transport(self, operation: Operation, body: str) -> AdapterResult[PlayerStatus]:
        reply = self._execute(operation, body)
        if isinstance(reply, AdapterError):
            return AdapterResult.failure(reply)
        state = parse_player_state(reply.stdout)
        if state is None:
            return AdapterResult.failure(_parse_error(operation, reply))
        return AdapterResult.success(state)

    def _launch(self) -> AdapterError | None:
        app = escape_applescript(self._player_app)
        logger.info("Launching %s before retrying playback.", self._player_app)
        outcome = self._run(f'tell application "{app}" to activate', "launch")
        if isinstance(outcome, AdapterError):
            return outcome
        error = classify_failure(outcome, "launch")
        if error is not None:
            return error
        self._sleep(self._launch_wait_s)
        return None

    def _execute(self, operation: Operation, body: str) -> BridgeReply | AdapterError:
        outcome = self._run(build_script(self._player_app, body), operation)
        if isinstance(outcome, AdapterError):
            return outcome
        error = classify_failure(outcome, operation)
        if error is not None:
            logger.debug("Player %s failed: %s", operation, error)
            return error
        return outcome

    def _run(self, script: str, operation: Operation) -> BridgeReply | AdapterError:
        logger.debug("Player command %s via bridge", operation)
        try:
            return self._bridge.run(script, timeout_s=self._timeout_s)
        except subprocess.TimeoutExpired:
            return AdapterError(
                "timeout",
                f"Player {operation} did not finish within {self._timeout_s:g}s.",
            )
        except OSError as exc:
            return AdapterError(
                "adapter_error",
                f"Scripting bridge unavailable: {exc}",
                raw=str(exc),
            )
        except Exception as exc:  # pragma: no cover - bridge safety net
            logger.exception("Unexpected bridge failure during %s", operation)
            return AdapterError("adapter_error", str(exc), raw=repr(exc))


def _parse_error(operation: Operation, reply: BridgeReply) -> AdapterError:
    return AdapterError(
        "parse_error",
        f"Unexpected reply to {operation} command.",
        raw=reply.stdout.strip(),
    )
