"""Tests for the automation loop state machine."""

from __future__ import annotations

import asyncio

import pytest

from conftest import make_config_data
import focus_music.services.automation_loop as automation_loop_module
from focus_music.classifier import TabInfo
from focus_music.config import parse_config
from focus_music.events import AutomationFailed, ContextChanged, TrackUpdated
from focus_music.services.automation_loop import AutomationLoop, UnknownContextError
from focus_music.services.fake_bridge import FakePlayerBridge
from focus_music.services.player_adapter import PlayerAdapter
from focus_music.services.tab_provider import StaticTabProvider

CODING = [TabInfo(url="https://github.com/me/repo", title="repo")]
FOCUS = [TabInfo(url="https://docs.python.org/3/", title="docs")]
MEETING = [TabInfo(url="https://meet.google.com/abc", title="Standup")]
CREATIVE = [TabInfo(url="https://figma.com/file/1", title="Mockups")]


def _run(coro):
    return asyncio.run(coro)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class Harness:
    def __init__(self, config=None, *, bridge=None, gate=None) -> None:
        self.config = config or parse_config(make_config_data())
        self.bridge = bridge or FakePlayerBridge()
        self.tabs = StaticTabProvider()
        self.clock = FakeClock()
        self.events: list[object] = []
        self.gate = gate
        self.loop = AutomationLoop(
            config=self.config,
            adapter=PlayerAdapter(self.bridge, sleep=lambda _seconds: None),
            tab_provider=self.tabs,
            emit_event=self._record,
            clock=self.clock,
        )

    async def _record(self, event: object) -> None:
        self.events.append(event)
        if self.gate is not None and isinstance(event, ContextChanged):
            await self.gate.wait()

    async def tick_with(self, tabs, *, at: float) -> None:
        self.tabs.set_tabs(tabs)
        self.clock.now = at
        assert await self.loop.tick()

    def switches(self) -> list[ContextChanged]:
        return [event for event in self.events if isinstance(event, ContextChanged)]

    def played(self) -> list[str]:
        return [
            script.split('play track "', 1)[1].split('"', 1)[0]
            for script in self.bridge.scripts
            if 'play track "' in script
        ]


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def test_initial_status_is_stopped_in_default_context() -> None:
    harness = Harness()
    status = harness.loop.status()
    assert status.running is False
    assert status.current_context == "default"
    assert status.last_error is None
    assert status.last_track is None


def test_first_change_applies_immediately() -> None:
    harness = Harness()

    async def scenario() -> None:
        await harness.tick_with(CODING, at=0)

    _run(scenario())
    assert harness.loop.status().current_context == "coding"
    assert harness.played() == ["spotify:playlist:coding"]
    assert harness.switches() == [ContextChanged("default", "coding", "auto")]
    assert harness.bridge.state.volume == 60


def test_alternating_classification_within_dwell_switches_once() -> None:
    harness = Harness()

    async def scenario() -> None:
        for second in range(30):
            await harness.tick_with(CODING if second % 2 == 0 else FOCUS, at=second)

    _run(scenario())
    assert len(harness.switches()) == 1
    assert harness.loop.status().current_context == "coding"


def test_change_is_accepted_after_dwell_elapses() -> None:
    harness = Harness()

    async def scenario() -> None:
        await harness.tick_with(CODING, at=0)
        await harness.tick_with(FOCUS, at=29)
        assert harness.loop.status().current_context == "coding"
        await harness.tick_with(FOCUS, at=30)

    _run(scenario())
    assert harness.loop.status().current_context == "focus"
    assert harness.played() == ["spotify:playlist:coding", "spotify:playlist:focus"]


def test_player_not_running_keeps_loop_running_and_context_unchanged() -> None:
    harness = Harness(bridge=FakePlayerBridge(running=False))
    harness.tabs.set_tabs(CODING)

    async def scenario() -> None:
        await harness.loop.start()
        await _settle()
        await harness.loop.wait_idle()
        status = harness.loop.status()
        assert status.running is True
        assert status.current_context == "default"
        assert status.last_error is not None
        assert status.last_error.kind == "player_not_running"
        await harness.loop.stop()

    _run(scenario())
    failures = [e for e in harness.events if isinstance(e, AutomationFailed)]
    assert [f.error.kind for f in failures] == ["player_not_running"]


def test_failed_switch_is_retried_on_next_tick() -> None:
    bridge = FakePlayerBridge(running=False)
    harness = Harness(bridge=bridge)

    async def scenario() -> None:
        await harness.tick_with(CODING, at=0)
        bridge.state.running = True
        await harness.tick_with(CODING, at=1)

    _run(scenario())
    status = harness.loop.status()
    assert status.current_context == "coding"
    assert status.last_error is None


def test_recovered_player_clears_stale_error_once_settled() -> None:
    bridge = FakePlayerBridge(running=False)
    harness = Harness(bridge=bridge)

    async def scenario() -> None:
        await harness.tick_with(CODING, at=0)
        assert harness.loop.status().last_error is not None
        bridge.state.running = True
        await harness.tick_with([], at=1)

    _run(scenario())
    status = harness.loop.status()
    assert status.current_context == "default"
    assert status.last_error is None


def test_failure_in_current_tick_is_kept_despite_track_refresh() -> None:
    bridge = FakePlayerBridge()
    bridge.invalid_playlists.add("spotify:playlist:coding")
    harness = Harness(bridge=bridge)

    async def scenario() -> None:
        await harness.tick_with(CODING, at=0)

    _run(scenario())
    status = harness.loop.status()
    assert status.current_context == "default"
    assert status.last_error is not None
    assert status.last_error.kind == "invalid_playlist"


def test_meeting_round_trip_pauses_then_resumes_new_context() -> None:
    harness = Harness()

    async def scenario() -> None:
        await harness.tick_with(CODING, at=0)
        await harness.tick_with(MEETING, at=100)
        assert harness.bridge.state.status == "paused"
        status = harness.loop.status()
        assert status.current_context == "meetings"
        assert status.pre_meeting_context == "coding"
        await harness.tick_with(FOCUS, at=200)

    _run(scenario())
    assert harness.loop.status().current_context == "focus"
    assert harness.played() == ["spotify:playlist:coding", "spotify:playlist:focus"]
    assert [event.source for event in harness.switches()] == [
        "auto",
        "auto",
        "resume",
    ]
    assert any("\t\tpause\n" in script for script in harness.bridge.scripts)


def test_manual_switch_wins_until_next_accepted_change() -> None:
    harness = Harness()

    async def scenario() -> None:
        await harness.tick_with(CODING, at=0)
        harness.clock.now = 40
        result = await harness.loop.manual_switch("creative")
        assert result.ok
        assert harness.loop.status().current_context == "creative"
        await harness.tick_with(CODING, at=50)
        assert harness.loop.status().current_context == "creative"
        await harness.tick_with(CODING, at=70)

    _run(scenario())
    assert harness.loop.status().current_context == "coding"
    assert [event.source for event in harness.switches()] == [
        "auto",
        "manual",
        "auto",
    ]


def test_manual_switch_unknown_context_raises_before_bridge_call() -> None:
    harness = Harness()
    with pytest.raises(UnknownContextError):
        _run(harness.loop.manual_switch("gaming"))
    assert harness.bridge.scripts == []


def test_manual_switch_failure_leaves_context_unchanged() -> None:
    bridge = FakePlayerBridge(invalid_playlists={"spotify:playlist:creative"})
    harness = Harness(bridge=bridge)
    result = _run(harness.loop.manual_switch("creative"))
    assert result.error is not None
    assert result.error.kind == "invalid_playlist"
    status = harness.loop.status()
    assert status.current_context == "default"
    assert status.last_error == result.error


def test_overlapping_tick_is_skipped() -> None:
    harness = Harness()
    harness.tabs.set_tabs(CODING)

    async def scenario() -> None:
        gate = asyncio.Event()
        harness.gate = gate
        first = asyncio.ensure_future(harness.loop.tick())
        await _settle()
        assert harness.loop.busy
        assert await harness.loop.tick() is False
        gate.set()
        assert await first is True

    _run(scenario())
    assert harness.played() == ["spotify:playlist:coding"]
    assert not harness.loop.busy


def test_stop_aborts_pending_resume() -> None:
    config = parse_config(make_config_data(resumeDelaySeconds=60))
    harness = Harness(config)

    async def scenario() -> None:
        await harness.tick_with(MEETING, at=0)
        harness.tabs.set_tabs(CODING)
        harness.clock.now = 100
        pending = asyncio.ensure_future(harness.loop.tick())
        await _settle()
        assert harness.loop.busy
        await harness.loop.stop()
        await pending

    _run(scenario())
    assert harness.loop.status().current_context == "meetings"
    assert harness.played() == []


def test_stop_during_tab_snapshot_sends_nothing_to_player(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    harness = Harness()

    async def scenario() -> None:
        await harness.tick_with(MEETING, at=0)
        harness.tabs.set_tabs(CODING)
        harness.clock.now = 100
        snapshot_gate = asyncio.Event()

        async def _gated(func, /, *args, **kwargs):
            if func == harness.tabs.get_tabs:
                await snapshot_gate.wait()
            return func(*args, **kwargs)

        monkeypatch.setattr(automation_loop_module, "run_blocking", _gated)
        await harness.loop.start()
        await _settle()
        assert harness.loop.busy
        await harness.loop.stop()
        snapshot_gate.set()
        await harness.loop.wait_idle()

    _run(scenario())
    assert harness.played() == []
    assert harness.loop.status().current_context == "meetings"
    assert harness.loop.running is False


def test_manual_tick_after_stop_still_classifies() -> None:
    harness = Harness()

    async def scenario() -> None:
        await harness.loop.start()
        await _settle()
        await harness.loop.wait_idle()
        await harness.loop.stop()
        await harness.tick_with(CODING, at=100)

    _run(scenario())
    assert harness.loop.status().current_context == "coding"


def test_manual_switch_cancels_pending_resume() -> None:
    config = parse_config(make_config_data(resumeDelaySeconds=60))
    harness = Harness(config)

    async def scenario() -> None:
        await harness.tick_with(MEETING, at=0)
        harness.tabs.set_tabs(CODING)
        harness.clock.now = 100
        pending = asyncio.ensure_future(harness.loop.tick())
        await _settle()
        result = await harness.loop.manual_switch("creative")
        assert result.ok
        await pending

    _run(scenario())
    assert harness.loop.status().current_context == "creative"
    assert harness.played() == ["spotify:playlist:creative"]


def test_start_and_stop_are_idempotent() -> None:
    harness = Harness()

    async def scenario() -> None:
        await harness.loop.stop()
        await harness.loop.start()
        await harness.loop.start()
        await _settle()
        await harness.loop.wait_idle()
        await harness.loop.stop()
        await harness.loop.stop()

    _run(scenario())
    assert harness.loop.running is False
    assert harness.loop.status().current_context == "default"


def test_track_updates_are_emitted_on_change_only() -> None:
    harness = Harness()

    async def scenario() -> None:
        await harness.tick_with(CODING, at=0)
        await harness.tick_with(CODING, at=1)

    _run(scenario())
    updates = [e for e in harness.events if isinstance(e, TrackUpdated)]
    assert len(updates) == 1
    assert updates[0].track is not None
    assert updates[0].track.title == "Track from spotify:playlist:coding"
    assert harness.loop.status().last_track == updates[0].track


def test_independent_loops_do_not_share_state() -> None:
    first = Harness()
    second = Harness()
    _run(first.tick_with(CODING, at=0))
    assert first.loop.status().current_context == "coding"
    assert second.loop.status().current_context == "default"
