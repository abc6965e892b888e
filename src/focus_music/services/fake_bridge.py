"""In-memory scripting bridge that simulates a player for tests and demos."""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from typing import Union

from .player_adapter import (
    FIELD_SEPARATOR,
    LIST_SEPARATOR,
    NOT_RUNNING_SENTINEL,
    PLAYLISTS_BODY,
    TRACK_BODY,
)
from .scripting_bridge import BridgeReply

_PLAY_TRACK_RE = re.compile(r'play track "((?:[^"\\]|\\.)*)"')
_SET_VOLUME_RE = re.compile(r"set sound volume to (-?\d+)")

FailureSpec = Union[BridgeReply, BaseException]


@dataclass
class _PlayerState:
    running: bool = True
    status: str = "stopped"
    volume: int = 50
    playlist: str | None = None
    title: str = ""
    artist: str = ""
    album: str = ""
    duration_ms: int = 0
    position_s: float = 0.0
    playlists: list[tuple[str, str]] = field(default_factory=list)


class FakePlayerBridge:
    """Answers the adapter's scripts from a simulated player state.

    Queued failures (`fail_next`) are consumed one per `run` call before the
    simulation is consulted; a queued exception is raised, a queued reply is
    returned as-is.
    """

    def __init__(
        self,
        *,
        running: bool = True,
        playlists: list[tuple[str, str]] | None = None,
        invalid_playlists: set[str] | None = None,
    ) -> None:
        self.state = _PlayerState(running=running, playlists=list(playlists or []))
        self.invalid_playlists = set(invalid_playlists or ())
        self.scripts: list[str] = []
        self._failures: deque[FailureSpec] = deque()

    def fail_next(self, *failures: FailureSpec) -> None:
        self._failures.extend(failures)

    def set_track(
        self,
        title: str,
        artist: str,
        album: str = "",
        *,
        duration_ms: int = 180_000,
        position_s: float = 0.0,
    ) -> None:
        self.state.title = title
        self.state.artist = artist
        self.state.album = album
        self.state.duration_ms = duration_ms
        self.state.position_s = position_s

    def run(self, script: str, *, timeout_s: float) -> BridgeReply:
        self.scripts.append(script)
        if self._failures:
            failure = self._failures.popleft()
            if isinstance(failure, BaseException):
                raise failure
            return failure
        if script.rstrip().endswith("to activate"):
            self.state.running = True
            return BridgeReply(0, "\n")
        if not self.state.running:
            return BridgeReply(0, f"{NOT_RUNNING_SENTINEL}\n")
        return self._answer(script)

    def _answer(self, script: str) -> BridgeReply:
        state = self.state
        match = _PLAY_TRACK_RE.search(script)
        if match is not None:
            uri = match.group(1)
            if uri in self.invalid_playlists:
                return BridgeReply(
                    1,
                    "",
                    f"execution error: Can’t get track \"{uri}\". (-1728)\n",
                )
            state.playlist = uri
            state.status = "playing"
            if not state.title:
                self.set_track(f"Track from {uri}", "Fake Artist")
            return BridgeReply(0, "playing\n")
        match = _SET_VOLUME_RE.search(script)
        if match is not None:
            state.volume = int(match.group(1))
            return BridgeReply(0, f"{state.volume}\n")
        if _has_body(script, TRACK_BODY):
            return BridgeReply(0, self._track_reply() + "\n")
        if _has_body(script, PLAYLISTS_BODY):
            names = FIELD_SEPARATOR.join(name for name, _ in state.playlists)
            ids = FIELD_SEPARATOR.join(uri for _, uri in state.playlists)
            return BridgeReply(0, f"{names}{LIST_SEPARATOR}{ids}\n")
        if "\tpause\n" in script:
            if state.status == "playing":
                state.status = "paused"
            return BridgeReply(0, f"{state.status}\n")
        if "\tplay\n" in script:
            state.status = "playing"
            return BridgeReply(0, "playing\n")
        return BridgeReply(1, "", "syntax error: Unknown command. (-2741)\n")

    def _track_reply(self) -> str:
        state = self.state
        if state.status == "stopped":
            fields = ["stopped", "", "", "", str(state.volume), "0", "0"]
        else:
            fields = [
                state.status,
                state.title,
                state.artist,
                state.album,
                str(state.volume),
                str(state.duration_ms),
                f"{state.position_s:.3f}",
            ]
        return FIELD_SEPARATOR.join(fields)


def _has_body(script: str, body: str) -> bool:
    first_line = body.strip().splitlines()[0]
    return first_line in script and body.strip().splitlines()[-1] in script
