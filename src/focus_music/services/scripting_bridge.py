"""OS scripting bridge contract and the `osascript` implementation.

The bridge is the player adapter's only dependency on the platform. It runs one
AppleScript text and reports the raw process outcome; interpreting that outcome
is the adapter's job.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

OSASCRIPT = "osascript"


@dataclass(frozen=True)
class BridgeReply:
    """Raw result of one bridge invocation."""

    returncode: int
    stdout: str
    stderr: str = ""


class ScriptingBridge(Protocol):
    """Executes a script with a bounded timeout.

    Implementations raise `subprocess.TimeoutExpired` when the timeout elapses
    and `OSError` when the bridge itself cannot be launched.
    """

    def run(self, script: str, *, timeout_s: float) -> BridgeReply: ...


class OsaScriptBridge:
    """Runs AppleScript through the macOS `osascript` binary."""

    def __init__(self, executable: str = OSASCRIPT) -> None:
        self._executable = executable

    @property
    def available(self) -> bool:
        return shutil.which(self._executable) is not None

    def run(self, script: str, *, timeout_s: float) -> BridgeReply:
        # The script goes through stdin so it never hits argv quoting rules.
        proc = subprocess.run(
            [self._executable, "-"],
            input=script,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout_s,
            check=False,
        )
        if proc.returncode != 0:
            logger.debug(
                "osascript exited %s: %s", proc.returncode, (proc.stderr or "").strip()
            )
        return BridgeReply(
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
