"""
Event-loop helpers for coalescing work.

Provides:
- DebouncedWriter: delay a write until input has been quiet for a while
- RefreshBatcher: collapse refresh requests per parent into one fetch
  scheduled on the next loop turn
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional, Set, Tuple

from loguru import logger


class DebouncedWriter:
    """
    Calls `write` with the arguments of the most recent call once no new
    call arrived for `delay_ms`.

    Arguments are captured per call, so a writer bound to one tab never
    writes values produced for another.

    Usage:
        writer = DebouncedWriter(150, store.set_name)
        writer(tab_id, "new name")   # schedules
        writer.flush()               # writes now
        writer.cancel()              # drops the pending write
    """

    def __init__(self, delay_ms: int, write: Callable[..., Any], name: str = "debounced"):
        self.delay = delay_ms / 1000.0
        self._write = write
        self.name = name
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[Tuple[tuple, dict]] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._pending = (args, kwargs)
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = None

    def flush(self) -> bool:
        """Run the pending write immediately. Returns False if nothing was pending."""
        if self._pending is None:
            return False
        self._fire()
        return True

    def _fire(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        pending, self._pending = self._pending, None
        if pending is None:
            return
        args, kwargs = pending
        try:
            self._write(*args, **kwargs)
        except Exception as e:
            logger.error(f"DebouncedWriter '{self.name}' write failed: {e}")


class RefreshBatcher:
    """
    Coalesces child refresh requests.

    Every parent requested during the current loop turn is fetched once,
    on the next turn. Fetch errors are handled by `fetch` itself.
    """

    def __init__(self, fetch: Callable[[str], Awaitable[None]]):
        self._fetch = fetch
        self._pending: Set[str] = set()
        self._handle: Optional[asyncio.Handle] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> Set[str]:
        return set(self._pending)

    def request(self, parent_id: str) -> None:
        self._pending.add(parent_id)
        if self._handle is None:
            self._handle = asyncio.get_running_loop().call_soon(self._drain)

    def _drain(self) -> None:
        self._handle = None
        parents, self._pending = self._pending, set()
        loop = asyncio.get_running_loop()
        for parent_id in sorted(parents):
            task = loop.create_task(self._fetch(parent_id))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def flush(self) -> None:
        """Start any pending fetches now and wait for all in-flight ones."""
        if self._handle is not None:
            self._handle.cancel()
            self._drain()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending.clear()
        for task in list(self._tasks):
            task.cancel()
