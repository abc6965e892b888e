"""Test configuration."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import focus_music.services.automation_loop as automation_loop_module  # noqa: E402
from focus_music.config import parse_config  # noqa: E402


@pytest.fixture(autouse=True)
def run_blocking_inline(monkeypatch: pytest.MonkeyPatch):
    """Run blocking adapters inline in tests to avoid thread hangs in CI/sandbox."""

    async def _inline(func, /, *args, **kwargs):
        return func(*args, **kwargs)

    monkeypatch.setattr(automation_loop_module, "run_blocking", _inline)


@pytest.fixture(autouse=True)
def ensure_current_event_loop():
    """Provide a current event loop for sync tests (required on Python 3.9)."""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        yield
    finally:
        loop.close()
        asyncio.set_event_loop(None)


def make_config_data(**overrides):
    """Config document with real-looking playlist ids for every context."""
    data = {
        "contexts": {
            "meetings": {
                "keywords": ["zoom", "meet.google", "teams"],
                "volume": 20,
                "playlistId": "spotify:playlist:meetings",
            },
            "coding": {
                "keywords": ["github", "stackoverflow"],
                "volume": 60,
                "playlistId": "spotify:playlist:coding",
            },
            "focus": {
                "keywords": ["docs", "youtube"],
                "volume": 40,
                "playlistId": "spotify:playlist:focus",
            },
            "creative": {
                "keywords": ["figma"],
                "volume": 70,
                "playlistId": "spotify:playlist:creative",
            },
            "default": {
                "keywords": [],
                "volume": 50,
                "playlistId": "spotify:playlist:default",
            },
        },
        "priorityOrder": ["meetings", "coding", "focus", "creative", "default"],
        "pollIntervalSeconds": 30,
        "resumeDelaySeconds": 0,
    }
    data.update(overrides)
    return data


@pytest.fixture
def config():
    return parse_config(make_config_data())
