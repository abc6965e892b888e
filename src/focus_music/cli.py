"""Command-line interface for focus-music."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import random
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from . import __version__
from .classifier import TabInfo, classify
from .config import (
    AutomationConfig,
    ConfigError,
    keyword_overlaps,
    load_config,
    write_default_config,
)
from .doctor import render_report, run_doctor
from .logging_utils import setup_logging
from .paths import contexts_path, log_dir, tabs_path
from .runtime_config import clamp_bridge_timeout, clamp_poll_interval, resolve_log_level
from .services.automation_loop import AutomationLoop, UnknownContextError
from .services.fake_bridge import FakePlayerBridge
from .services.player_adapter import AdapterResult, PlayerAdapter, TrackSnapshot
from .services.scripting_bridge import OsaScriptBridge, ScriptingBridge
from .services.tab_provider import JsonFileTabProvider
from .ui.status_pane import format_status, format_track, format_visualization
from .version import build_help_epilog
from .visualization import generate, render, to_data_uri
from .visualization.generator import VisualizationParameters

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focus-music",
        description="Switch music to match the work context of your browser tabs.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=build_help_epilog(),
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument("--config", help="Path to contexts.json")
    parser.add_argument(
        "--bridge",
        choices=("osascript", "fake"),
        default="osascript",
        help="Scripting bridge to drive the player (osascript or fake).",
    )
    parser.add_argument(
        "--tabs-file", help="JSON tab snapshot polled by the automation"
    )
    parser.add_argument(
        "--bridge-timeout", type=float, help="Seconds before a player call times out"
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)
    run = sub.add_parser("run", help="Run the automation in the foreground")
    run.add_argument("--poll-interval", type=int, help="Seconds between polls")
    run.add_argument("--once", action="store_true", help="Poll once and exit")
    dashboard = sub.add_parser("dashboard", help="Open the terminal dashboard")
    dashboard.add_argument("--poll-interval", type=int, help="Seconds between polls")
    dashboard.add_argument(
        "--no-autostart", action="store_true", help="Start with automation stopped"
    )
    switch = sub.add_parser("switch", help="Switch to a context manually")
    switch.add_argument("context")
    sub.add_parser("status", help="Show the current track and its visualization")
    config = sub.add_parser("config", help="Show the context configuration")
    config.add_argument(
        "--init", action="store_true", help="Write the default contexts.json"
    )
    classify_cmd = sub.add_parser("classify", help="Classify a tab snapshot")
    classify_cmd.add_argument("--tabs", help="JSON tab snapshot file")
    classify_cmd.add_argument(
        "--url", action="append", default=[], help="Tab URL (repeatable)"
    )
    sub.add_parser("playlists", help="List the player's playlists")
    sub.add_parser("pause", help="Pause playback")
    sub.add_parser("resume", help="Resume playback")
    volume = sub.add_parser("volume", help="Set the player volume (0-100)")
    volume.add_argument("level", type=int)
    visualize = sub.add_parser("visualize", help="Render the track visualization SVG")
    visualize.add_argument("--title", help="Track title (default: current track)")
    visualize.add_argument("--artist", default="", help="Track artist")
    visualize.add_argument("--output", help="Write the SVG to this path")
    visualize.add_argument("--data-uri", action="store_true", help="Print a data: URI")
    visualize.add_argument("--seed", type=int, help="Seed for bar-height jitter")
    sub.add_parser("doctor", help="Check bridge and configuration readiness")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
            console=args.command != "dashboard",
        )
        logger.debug("Running command %s", args.command)
        return _COMMANDS[args.command](args, Console())
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        return EXIT_OK
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return EXIT_FAILURE


def _config_path(args: argparse.Namespace) -> Path:
    return Path(args.config) if args.config else contexts_path()


def _load_config(args: argparse.Namespace) -> AutomationConfig:
    config = load_config(_config_path(args))
    timeout = clamp_bridge_timeout(
        getattr(args, "bridge_timeout", None), config.bridge_timeout_s
    )
    poll = clamp_poll_interval(
        getattr(args, "poll_interval", None), config.poll_interval_s
    )
    if poll != config.poll_interval_s or timeout != config.bridge_timeout_s:
        dwell = config.min_dwell_s
        if dwell == config.poll_interval_s:
            dwell = poll
        config = dataclasses.replace(
            config, poll_interval_s=poll, min_dwell_s=dwell, bridge_timeout_s=timeout
        )
    return config


def _build_bridge(name: str) -> ScriptingBridge:
    if name == "fake":
        bridge = FakePlayerBridge(
            playlists=[("Deep Focus", "spotify:playlist:37i9dQZF1DWZeKCadgRdKQ")]
        )
        bridge.set_track("Happy Coding", "The Fake Band", "Demo", position_s=42.0)
        bridge.state.status = "playing"
        return bridge
    return OsaScriptBridge()


def _build_adapter(
    args: argparse.Namespace, config: AutomationConfig
) -> PlayerAdapter:
    return PlayerAdapter.from_config(config, _build_bridge(args.bridge))


def _build_loop(args: argparse.Namespace, config: AutomationConfig) -> AutomationLoop:
    path = Path(args.tabs_file) if args.tabs_file else tabs_path()
    return AutomationLoop(
        config=config,
        adapter=_build_adapter(args, config),
        tab_provider=JsonFileTabProvider(path),
    )


def _cmd_run(args: argparse.Namespace, console: Console) -> int:
    config = _load_config(args)
    automation = _build_loop(args, config)

    async def run() -> None:
        if args.once:
            await automation.tick()
            return
        await automation.start()
        try:
            while automation.running:
                await asyncio.sleep(1.0)
        finally:
            await automation.stop()
            await automation.wait_idle()

    console.print(f"Automation running every {config.poll_interval_s}s; Ctrl-C stops.")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("Automation stopped.")
    console.print(format_status(automation.status(), config))
    error = automation.status().last_error
    return EXIT_FAILURE if args.once and error is not None else EXIT_OK


def _cmd_dashboard(args: argparse.Namespace, console: Console) -> int:
    from .app import FocusMusicApp

    config = _load_config(args)
    app = FocusMusicApp(_build_loop(args, config), autostart=not args.no_autostart)
    app.run()
    return EXIT_OK


def _cmd_switch(args: argparse.Namespace, console: Console) -> int:
    config = _load_config(args)
    automation = _build_loop(args, config)
    try:
        result = asyncio.run(automation.manual_switch(args.context))
    except UnknownContextError:
        names = ", ".join(config.priority_order)
        print(f"Unknown context {args.context!r}. Available: {names}", file=sys.stderr)
        return EXIT_CONFIG
    context = config.get(args.context)
    assert context is not None
    return _report(
        console,
        result,
        f"Switched to {context.name}: {context.playlist_id} at {context.volume}%",
    )


def _cmd_status(args: argparse.Namespace, console: Console) -> int:
    config = _load_config(args)
    result = _build_adapter(args, config).get_current_track()
    if result.error is not None:
        console.print(f"[red]Error:[/red] {result.error}")
        return EXIT_FAILURE
    console.print(format_track(result.value))
    console.print(format_visualization(generate(result.value)))
    return EXIT_OK


def _cmd_config(args: argparse.Namespace, console: Console) -> int:
    path = _config_path(args)
    if args.init:
        if path.exists():
            print(f"{path} already exists; not overwriting.", file=sys.stderr)
            return EXIT_CONFIG
        write_default_config(path)
        console.print(f"Wrote default contexts to {path}")
    config = _load_config(args)
    table = Table(title=f"Contexts ({path})")
    for column in ("#", "Context", "Volume", "Playlist", "Keywords", "Description"):
        table.add_column(column)
    for index, context in enumerate(config.contexts, start=1):
        table.add_row(
            str(index),
            context.name,
            f"{context.volume}%",
            context.playlist_id if context.playlist_configured else "(not set)",
            ", ".join(context.keywords) or "-",
            context.description,
        )
    console.print(table)
    console.print(
        f"poll {config.poll_interval_s}s · dwell {config.min_dwell_s}s · "
        f"resume delay {config.resume_delay_s}s · player {config.player_app}"
    )
    for higher, lower, keyword in keyword_overlaps(config):
        console.print(
            f"[yellow]note:[/yellow] {lower} keyword {keyword!r} is shadowed by "
            f"{higher} (priority order decides)"
        )
    return EXIT_OK


def _cmd_classify(args: argparse.Namespace, console: Console) -> int:
    config = _load_config(args)
    tabs = [TabInfo(url=url) for url in args.url]
    if args.tabs or not tabs:
        source = args.tabs or args.tabs_file
        provider = JsonFileTabProvider(Path(source) if source else tabs_path())
        tabs = provider.get_tabs() + tabs
    context = classify(tabs, config.contexts, default=config.default_context)
    console.print(f"{context} ({len(tabs)} tabs)")
    return EXIT_OK


def _cmd_playlists(args: argparse.Namespace, console: Console) -> int:
    result = _build_adapter(args, _load_config(args)).list_playlists()
    if result.error is not None or result.value is None:
        console.print(f"[red]Error:[/red] {result.error}")
        return EXIT_FAILURE
    for playlist in result.value:
        console.print(f"{playlist.name}: {playlist.uri}")
    if not result.value:
        console.print("No playlists reported by the player.")
    return EXIT_OK


def _cmd_pause(args: argparse.Namespace, console: Console) -> int:
    return _report(console, _build_adapter(args, _load_config(args)).pause(), "Paused")


def _cmd_resume(args: argparse.Namespace, console: Console) -> int:
    result = _build_adapter(args, _load_config(args)).resume()
    return _report(console, result, "Resumed")


def _cmd_volume(args: argparse.Namespace, console: Console) -> int:
    result = _build_adapter(args, _load_config(args)).set_volume(args.level)
    return _report(console, result, f"Volume set to {result.value}%")


def _cmd_visualize(args: argparse.Namespace, console: Console) -> int:
    rng = random.Random(args.seed) if args.seed is not None else None
    params: VisualizationParameters
    if args.title is not None:
        track = TrackSnapshot(
            title=args.title,
            artist=args.artist,
            album="",
            volume=0,
            duration_ms=0,
            position_ms=0,
        )
        params = generate(track, rng=rng)
    else:
        result = _build_adapter(args, _load_config(args)).get_current_track()
        if result.error is not None:
            logger.warning("No current track (%s); rendering neutral defaults", result.error)
        params = generate(result.value, rng=rng)
    svg = render(params)
    if args.output:
        Path(args.output).write_text(svg, encoding="utf-8")
        console.print(f"Wrote {args.output}")
    elif args.data_uri:
        print(to_data_uri(svg))
    else:
        print(svg)
    Console(stderr=True).print(format_visualization(params))
    return EXIT_OK


def _cmd_doctor(args: argparse.Namespace, console: Console) -> int:
    report = run_doctor(args.bridge, _config_path(args))
    print(render_report(report))
    return report.exit_code


def _report(console: Console, result: AdapterResult[Any], message: str) -> int:
    if result.error is not None:
        console.print(f"[red]Error:[/red] {result.error}")
        return EXIT_FAILURE
    volume_error = getattr(result.value, "volume_error", None)
    console.print(message)
    if volume_error is not None:
        console.print(f"[yellow]Volume not applied:[/yellow] {volume_error}")
    return EXIT_OK


_COMMANDS: dict[str, Callable[[argparse.Namespace, Console], int]] = {
    "run": _cmd_run,
    "dashboard": _cmd_dashboard,
    "switch": _cmd_switch,
    "status": _cmd_status,
    "config": _cmd_config,
    "classify": _cmd_classify,
    "playlists": _cmd_playlists,
    "pause": _cmd_pause,
    "resume": _cmd_resume,
    "volume": _cmd_volume,
    "visualize": _cmd_visualize,
    "doctor": _cmd_doctor,
}


if __name__ == "__main__":
    raise SystemExit(main())
