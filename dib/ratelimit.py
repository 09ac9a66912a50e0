"""Limit how many builds run at the same time."""

from __future__ import annotations

import threading
from types import TracebackType
from typing import Protocol


class RateLimiter(Protocol):
    """Something that hands out a limited number of slots."""

    def acquire(self) -> None:
        """Wait until a slot is free and take it."""
        ...

    def release(self) -> None:
        """Give a slot back."""
        ...


class ChannelRateLimiter:
    """A rate limiter that allows at most ``concurrency`` holders at once."""

    def __init__(self, concurrency: int) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self._slots = threading.BoundedSemaphore(concurrency)

    def acquire(self) -> None:
        """Block until a slot is available."""
        self._slots.acquire()

    def release(self) -> None:
        """Free a slot so the next waiter can proceed."""
        try:
            self._slots.release()
        except ValueError as err:
            raise RuntimeError("release called without a matching acquire") from err

    def __enter__(self) -> ChannelRateLimiter:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()