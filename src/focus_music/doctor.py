"""Environment diagnostics for the AppleScript bridge and context config.

`focus-music doctor` exits 2 when a required check fails. Platform and
`osascript` checks are only required for the real bridge; the fake bridge
needs nothing beyond a loadable configuration.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from .config import ConfigError, load_config

DoctorStatus = Literal["ok", "missing", "error"]

OSASCRIPT_SELF_TEST = ["-e", "return 1"]
OSASCRIPT_SELF_TEST_TIMEOUT_S = 5
_STATUS_TOKENS: dict[str, str] = {"ok": "[OK]", "missing": "[MISS]", "error": "[ERR]"}


@dataclass(frozen=True)
class DoctorCheck:
    name: str
    status: DoctorStatus
    required: bool
    detail: str
    hint: str | None = None

    @property
    def blocking(self) -> bool:
        return self.required and self.status != "ok"


@dataclass(frozen=True)
class DoctorReport:
    bridge: str
    checks: list[DoctorCheck] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 2 if any(check.blocking for check in self.checks) else 0


def run_doctor(bridge: str, config_path: Path | None) -> DoctorReport:
    """Probe everything the selected bridge depends on."""
    needs_osascript = bridge == "osascript"
    return DoctorReport(
        bridge=bridge,
        checks=[
            probe_config(config_path),
            probe_platform(required=needs_osascript),
            probe_osascript(required=needs_osascript),
        ],
    )


def render_report(report: DoctorReport) -> str:
    lines = [f"focus-music doctor (bridge={report.bridge})", ""]
    for check in report.checks:
        kind = "required" if check.required else "optional"
        token = _STATUS_TOKENS.get(check.status, "[ERR]")
        lines.append(f"{token:<6} {check.name:<9} [{kind}] {check.detail}")
        if check.hint:
            lines.append(f"       hint: {check.hint}")
    lines += ["", f"Result: {'OK' if report.exit_code == 0 else 'FAIL'}"]
    return "\n".join(lines)


def probe_config(path: Path | None) -> DoctorCheck:
    """Load and validate contexts; flag contexts still using the placeholder."""
    try:
        config = load_config(path)
    except ConfigError as exc:
        return DoctorCheck(
            "config",
            "error",
            True,
            str(exc),
            hint="Fix contexts.json or run `focus-music config --init`.",
        )
    origin = str(path) if path is not None and path.exists() else "built-in defaults"
    pending = [ctx.name for ctx in config.contexts if not ctx.playlist_configured]
    return DoctorCheck(
        "config",
        "ok",
        True,
        f"{len(config.contexts)} contexts from {origin}",
        hint=f"Playlist placeholders left in: {', '.join(pending)}" if pending else None,
    )


def probe_platform(*, required: bool) -> DoctorCheck:
    if sys.platform == "darwin":
        return DoctorCheck("platform", "ok", required, "macOS")
    return DoctorCheck(
        "platform",
        "missing",
        required,
        f"{sys.platform} has no AppleScript bridge",
        hint="Use --bridge fake to exercise the automation without a player.",
    )


def probe_osascript(*, required: bool) -> DoctorCheck:
    """Locate `osascript` and evaluate a trivial script with it."""
    binary = shutil.which("osascript")
    if binary is None:
        return DoctorCheck("osascript", "missing", required, "not found on PATH")
    try:
        proc = subprocess.run(
            [binary, *OSASCRIPT_SELF_TEST],
            capture_output=True,
            text=True,
            timeout=OSASCRIPT_SELF_TEST_TIMEOUT_S,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        return DoctorCheck(
            "osascript", "error", required, f"launch failed ({type(exc).__name__})"
        )
    if proc.returncode == 0 and proc.stdout.strip() == "1":
        return DoctorCheck("osascript", "ok", required, f"found at {binary}")
    first_error = next(iter((proc.stderr or "").strip().splitlines()), "")
    detail = f"self-test failed (exit={proc.returncode})"
    if first_error:
        detail = f"{detail}: {first_error}"
    return DoctorCheck("osascript", "error", required, detail)
