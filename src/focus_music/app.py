"""Textual status dashboard polling an `AutomationLoop`."""

from __future__ import annotations

import logging
import random

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Header, Static

from .services.automation_loop import AutomationLoop, UnknownContextError
from .services.player_adapter import TrackSnapshot
from .ui.status_pane import format_status, format_track, format_visualization
from .visualization import VisualizationParameters, generate

logger = logging.getLogger(__name__)
STATUS_REFRESH_INTERVAL_S = 1.0


class FocusMusicApp(App):
    TITLE = "focus-music"
    CSS = """
    Screen {
        layout: vertical;
    }

    #main {
        height: 1fr;
    }

    #status-pane {
        width: 1fr;
        border: solid white;
        padding: 0 1;
    }

    #right-pane {
        width: 1fr;
    }

    #track-pane, #visual-pane {
        border: solid white;
        height: 1fr;
        padding: 0 1;
    }
    """
    BINDINGS = [
        ("s", "toggle_automation", "Start/Stop"),
        ("t", "tick", "Poll now"),
        ("1", "switch(0)", "Ctx 1"),
        ("2", "switch(1)", "Ctx 2"),
        ("3", "switch(2)", "Ctx 3"),
        ("4", "switch(3)", "Ctx 4"),
        ("5", "switch(4)", "Ctx 5"),
        ("6", "switch(5)", ""),
        ("7", "switch(6)", ""),
        ("8", "switch(7)", ""),
        ("9", "switch(8)", ""),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        automation: AutomationLoop,
        *,
        autostart: bool = True,
        refresh_interval_s: float = STATUS_REFRESH_INTERVAL_S,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__()
        self.automation = automation
        self._autostart = autostart
        self._refresh_interval_s = max(0.1, refresh_interval_s)
        self._rng = rng
        self._visual_key: tuple[str, str] | None = None
        self._visual: VisualizationParameters | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            Static("", id="status-pane"),
            Vertical(
                Static("", id="track-pane"),
                Static("", id="visual-pane"),
                id="right-pane",
            ),
            id="main",
        )
        yield Footer()

    async def on_mount(self) -> None:
        if self._autostart:
            await self.automation.start()
        self.refresh_panes()
        self.set_interval(self._refresh_interval_s, self.refresh_panes)

    async def on_unmount(self) -> None:
        await self.automation.stop()

    def refresh_panes(self) -> None:
        status = self.automation.status()
        self.query_one("#status-pane", Static).update(
            format_status(status, self.automation.config)
        )
        self.query_one("#track-pane", Static).update(format_track(status.last_track))
        self.query_one("#visual-pane", Static).update(
            format_visualization(self._visualization_for(status.last_track))
        )

    def _visualization_for(self, track: TrackSnapshot | None) -> VisualizationParameters:
        # Regenerate only on track change so bar jitter does not flicker.
        key = (track.title, track.artist) if track is not None else ("", "")
        if self._visual is None or key != self._visual_key:
            self._visual_key = key
            self._visual = generate(track, rng=self._rng)
        return self._visual

    async def action_toggle_automation(self) -> None:
        if self.automation.running:
            await self.automation.stop()
        else:
            await self.automation.start()
        self.refresh_panes()

    async def action_tick(self) -> None:
        if not await self.automation.tick():
            self.notify("Player call still in progress; poll skipped.")
        self.refresh_panes()

    async def action_switch(self, index: int) -> None:
        contexts = self.automation.config.contexts
        if not 0 <= index < len(contexts):
            return
        name = contexts[index].name
        try:
            result = await self.automation.manual_switch(name)
        except UnknownContextError as exc:  # pragma: no cover - index is bounded
            self.notify(str(exc), severity="error")
            return
        if result.error is not None:
            self.notify(f"Switch to {name} failed: {result.error}", severity="error")
        self.refresh_panes()
