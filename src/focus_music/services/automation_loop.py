"""Context automation loop between tab snapshots and the player adapter.

`AutomationLoop` owns the automation state. It polls the tab provider on a
single timer, classifies, applies the dwell-time debounce, pauses playback for
meetings and resumes afterwards, and routes every blocking adapter call through
`run_blocking` so the event loop stays responsive.

At most one adapter operation (a tick, a manual switch, or a meeting resume)
is outstanding at any time. Timer ticks that fire while one is outstanding are
skipped rather than queued, so a hung bridge call stalls one tick and never
accumulates concurrent bridge processes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from focus_music.classifier import classify
from focus_music.config import AutomationConfig, ContextDefinition
from focus_music.events import (
    AutomationFailed,
    ContextChanged,
    SwitchSource,
    TrackUpdated,
)
from focus_music.services.player_adapter import (
    AdapterError,
    AdapterResult,
    PlayerAdapter,
    TrackSnapshot,
)
from focus_music.services.tab_provider import TabSnapshotProvider
from focus_music.utils.async_utils import run_blocking

logger = logging.getLogger(__name__)


class UnknownContextError(ValueError):
    """Raised when a caller names a context absent from the configuration."""


@dataclass
class AutomationState:
    """Mutable automation state; owned by exactly one `AutomationLoop`."""

    current_context: str
    poll_interval_s: int
    running: bool = False
    last_switch_at: float | None = None
    pre_meeting_context: str | None = None
    last_track: TrackSnapshot | None = None
    last_error: AdapterError | None = None


@dataclass(frozen=True)
class AutomationStatus:
    """Read-only snapshot of automation state for UI pollers."""

    running: bool
    current_context: str
    last_track: TrackSnapshot | None
    last_error: AdapterError | None
    last_switch_at: float | None
    pre_meeting_context: str | None
    poll_interval_s: int


class AutomationLoop:
    """Polls tabs, classifies, debounces, and drives the player adapter."""

    def __init__(
        self,
        *,
        config: AutomationConfig,
        adapter: PlayerAdapter,
        tab_provider: TabSnapshotProvider,
        emit_event: Callable[[object], Awaitable[None]] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._adapter = adapter
        self._tab_provider = tab_provider
        self._emit_event = emit_event
        self._clock = clock
        self._state = AutomationState(
            current_context=config.default_context,
            poll_interval_s=config.poll_interval_s,
        )
        self._timer_task: asyncio.Task[None] | None = None
        self._work_task: asyncio.Task[None] | None = None
        self._resume_abort: asyncio.Event | None = None
        # Bumped by stop(); a tick that straddles a stop drops its remaining work.
        self._stop_generation = 0

    @property
    def config(self) -> AutomationConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._state.running

    @property
    def busy(self) -> bool:
        """Whether an adapter operation is outstanding."""
        return self._work_task is not None and not self._work_task.done()

    def status(self) -> AutomationStatus:
        state = self._state
        return AutomationStatus(
            running=state.running,
            current_context=state.current_context,
            last_track=state.last_track,
            last_error=state.last_error,
            last_switch_at=state.last_switch_at,
            pre_meeting_context=state.pre_meeting_context,
            poll_interval_s=state.poll_interval_s,
        )

    async def start(self) -> None:
        """Enter `Running`; the first tick fires immediately."""
        if self._state.running:
            return
        self._state.running = True
        logger.info(
            "Automation started (poll=%ss, dwell=%ss)",
            self._config.poll_interval_s,
            self._config.min_dwell_s,
        )
        self._timer_task = asyncio.create_task(self._timer_loop())

    async def stop(self) -> None:
        """Enter `Stopped`; in-flight adapter calls finish, no new tick starts."""
        self._stop_generation += 1
        self._abort_pending_resume()
        if not self._state.running:
            return
        self._state.running = False
        if self._timer_task is not None:
            self._timer_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._timer_task
            self._timer_task = None
        logger.info("Automation stopped in context %s", self._state.current_context)

    async def wait_idle(self) -> None:
        """Wait for the outstanding adapter operation, if any."""
        while self.busy:
            assert self._work_task is not None
            await asyncio.wait({self._work_task})

    async def tick(self) -> bool:
        """Run one poll cycle now; returns False when skipped as overlapping."""
        task = self._start_work(self._run_tick())
        if task is None:
            return False
        await asyncio.wait({task})
        return True

    async def manual_switch(self, name: str) -> AdapterResult[Any]:
        """Switch to `name` immediately, bypassing the classifier and debounce."""
        context = self._config.get(name)
        if context is None:
            raise UnknownContextError(f"Unknown context: {name}")
        self._abort_pending_resume()
        await self.wait_idle()
        results: list[AdapterResult[Any]] = []

        async def run() -> None:
            logger.info("Manual switch to %s", name)
            results.append(await self._apply(context, source="manual"))

        task = self._start_work(run())
        assert task is not None
        await asyncio.wait({task})
        if not results:
            return AdapterResult.failure(
                AdapterError("adapter_error", "Manual switch did not complete.")
            )
        return results[0]

    async def _timer_loop(self) -> None:
        try:
            while self._state.running:
                if self._start_work(self._run_tick()) is None:
                    logger.debug("Skipping tick; previous adapter call still running")
                await asyncio.sleep(self._state.poll_interval_s)
        except asyncio.CancelledError:
            pass

    def _start_work(self, coro: Awaitable[None]) -> asyncio.Task[None] | None:
        if self.busy:
            close = getattr(coro, "close", None)
            if callable(close):
                close()
            return None
        self._work_task = asyncio.ensure_future(self._guarded(coro))
        return self._work_task

    async def _guarded(self, coro: Awaitable[None]) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pragma: no cover - loop safety net
            logger.exception("Automation tick failed unexpectedly")
            self._state.last_error = AdapterError("adapter_error", str(exc))

    async def _run_tick(self) -> None:
        generation = self._stop_generation
        error_before = self._state.last_error
        try:
            tabs = await run_blocking(self._tab_provider.get_tabs)
        except Exception as exc:
            logger.warning("Tab snapshot failed; skipping tick: %s", exc)
            self._state.last_error = AdapterError(
                "adapter_error", f"Tab snapshot failed: {exc}"
            )
            return
        if generation != self._stop_generation:
            logger.debug("Automation stopped during tab snapshot; dropping tick")
            return
        classified = classify(
            tabs, self._config.contexts, default=self._config.default_context
        )
        await self._on_classified(classified, generation)
        if generation != self._stop_generation:
            return
        settled = classified == self._state.current_context
        # A settled tick answered by the player makes an older error stale.
        recovered = await self._refresh_track()
        if recovered and settled and self._state.last_error is error_before:
            self._state.last_error = None

    async def _on_classified(self, classified: str, generation: int) -> None:
        state = self._state
        if classified == state.current_context:
            return
        if state.last_switch_at is not None:
            elapsed = self._clock() - state.last_switch_at
            if elapsed < self._config.min_dwell_s:
                logger.debug(
                    "Debounced %s -> %s (%.1fs < %ss dwell)",
                    state.current_context,
                    classified,
                    elapsed,
                    self._config.min_dwell_s,
                )
                return
        context = self._config.get(classified)
        if context is None:  # pragma: no cover - classify only returns known names
            return
        meetings = self._config.meetings_context
        if state.current_context == meetings and classified != meetings:
            if not await self._wait_resume_delay():
                return
            if generation != self._stop_generation:
                logger.info("Automation stopped during resume delay; not resuming")
                return
            await self._apply(context, source="resume")
            return
        await self._apply(context, source="auto")

    async def _wait_resume_delay(self) -> bool:
        """Sleep the resume delay; False when stop/manual switch aborted it."""
        abort = asyncio.Event()
        self._resume_abort = abort
        try:
            await asyncio.wait_for(abort.wait(), timeout=self._config.resume_delay_s)
        except asyncio.TimeoutError:
            return True
        finally:
            self._resume_abort = None
        logger.info("Pending resume after meeting was cancelled")
        return False

    def _abort_pending_resume(self) -> None:
        if self._resume_abort is not None:
            self._resume_abort.set()

    async def _apply(
        self, context: ContextDefinition, *, source: SwitchSource
    ) -> AdapterResult[Any]:
        state = self._state
        previous = state.current_context
        if context.name == self._config.meetings_context:
            result: AdapterResult[Any] = await run_blocking(self._adapter.pause)
        else:
            result = await run_blocking(self._adapter.switch_to_context, context)
        if result.error is not None:
            await self._record_failure(context.name, result.error)
            return result

        if context.name == self._config.meetings_context:
            if previous != context.name:
                state.pre_meeting_context = previous
        state.current_context = context.name
        state.last_switch_at = self._clock()
        state.last_error = getattr(result.value, "volume_error", None)
        logger.info(
            "Context %s -> %s (%s)",
            previous,
            context.name,
            source,
            extra={"previous": previous, "current": context.name, "source": source},
        )
        await self._emit(ContextChanged(previous, context.name, source))
        return result

    async def _record_failure(self, context: str, error: AdapterError) -> None:
        logger.warning(
            "Player call for context %s failed: %s",
            context,
            error,
            extra={"kind": error.kind, "target_context": context},
        )
        self._state.last_error = error
        await self._emit(AutomationFailed(context=context, error=error))

    async def _refresh_track(self) -> bool:
        """Poll the current track; True when the player answered."""
        result = await run_blocking(self._adapter.get_current_track)
        if result.error is not None:
            logger.debug("Track refresh failed: %s", result.error)
        track = result.value
        previous = self._state.last_track
        self._state.last_track = track
        if _track_key(previous) != _track_key(track):
            await self._emit(TrackUpdated(track))
        return result.error is None

    async def _emit(self, event: object) -> None:
        if self._emit_event is None:
            return
        try:
            await self._emit_event(event)
        except Exception:  # pragma: no cover - subscriber safety net
            logger.exception("Automation event subscriber failed")


def _track_key(track: TrackSnapshot | None) -> tuple[str, str] | None:
    if track is None:
        return None
    return track.title, track.artist
