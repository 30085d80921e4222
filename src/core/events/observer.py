from contextlib import contextmanager
from loguru import logger
from typing import Callable, Iterator, List


class Signal:
    """
    A simple observer pattern implementation (Synchronous).

    Subscribers are called in connection order. A failing subscriber is
    logged and skipped so one broken listener cannot stop a state update
    from reaching the others.
    """
    def __init__(self, name: str = "Signal"):
        self.name = name
        self._subscribers: List[Callable] = []
        self._blocked = 0

    def connect(self, callback: Callable) -> Callable[[], None]:
        """Connect a callback; returns a function that disconnects it."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)
        return lambda: self.disconnect(callback)

    def disconnect(self, callback: Callable):
        """Disconnect a callback function from this signal."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @contextmanager
    def blocked(self) -> Iterator[None]:
        """Suppress emissions while the block runs (nestable)."""
        self._blocked += 1
        try:
            yield
        finally:
            self._blocked -= 1

    def emit(self, *args, **kwargs):
        """Broadcast arguments to all subscribers synchronously."""
        if self._blocked:
            return
        for sub in list(self._subscribers):
            try:
                sub(*args, **kwargs)
            except Exception as e:
                logger.error(f"Signal '{self.name}' error in subscriber '{sub}': {e}")
