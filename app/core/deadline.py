"""Per-request deadline threaded through every awaited I/O call."""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Optional, TypeVar

from app.core.errors import SearchTimeoutError

T = TypeVar("T")


class Deadline:
    """Absolute point in (monotonic) time a request must finish by.

    ``Deadline(None)`` never expires, which is what background and admin
    callers pass.
    """

    def __init__(self, timeout: Optional[float]) -> None:
        self.timeout = timeout
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    async def run(self, awaitable: Awaitable[T], *, label: str = "operation") -> T:
        """Await ``awaitable`` but give up once the deadline passes."""
        remaining = self.remaining()
        if remaining is None:
            return await awaitable
        if remaining <= 0.0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise SearchTimeoutError(f"{label} skipped: request deadline exceeded")
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError as exc:
            raise SearchTimeoutError(f"{label} timed out after {self.timeout}s") from exc
