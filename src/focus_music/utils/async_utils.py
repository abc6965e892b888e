"""Offload blocking bridge calls from the event loop."""

from __future__ import annotations

import asyncio
import atexit
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, TypeVar

T = TypeVar("T")

# Single worker: a hung osascript must never fan out into parallel processes.
_BRIDGE_EXECUTOR = ThreadPoolExecutor(
    max_workers=1, thread_name_prefix="focus-music-bridge"
)
_WAKEUP_POLL_S = 0.1


@atexit.register
def _shutdown_bridge_executor() -> None:
    _BRIDGE_EXECUTOR.shutdown(wait=False, cancel_futures=True)


async def run_blocking(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Await `func(*args, **kwargs)` run on the bridge worker thread."""
    if not callable(func):
        raise TypeError("func must be callable")
    call = partial(func, *args, **kwargs)
    future = asyncio.get_running_loop().run_in_executor(_BRIDGE_EXECUTOR, call)
    # Executor completion wakeups can be missed in some sandboxes; poll instead
    # of awaiting the future once.
    while not future.done():
        try:
            await asyncio.wait_for(asyncio.shield(future), timeout=_WAKEUP_POLL_S)
        except asyncio.TimeoutError:
            pass
    return future.result()
