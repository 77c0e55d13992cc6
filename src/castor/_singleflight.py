"""Async single-flight helper.

Concurrent callers asking for the same key share one in-flight computation:
the first caller runs the work, the rest await its Future.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

K = TypeVar("K")
T = TypeVar("T")


def consume_future_exception(fut: asyncio.Future[Any]) -> None:
    """Avoid 'Future exception was never retrieved' for coordination futures."""
    try:
        _ = fut.exception()
    except asyncio.CancelledError:
        return


class SingleFlight(Generic[K, T]):
    """Deduplicates concurrent work per key.

    Only the most recent completed result is remembered; a new success
    replaces it.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._inflight: dict[K, asyncio.Future[T]] = {}
        self._done: dict[K, T] = {}

    def completed(self, key: K) -> T | None:
        return self._done.get(key)

    async def run(self, key: K, work: Callable[[], Awaitable[T]]) -> T:
        """Return the result for *key*, running *work* at most once at a time.

        - Latest completed key: the remembered result is returned.
        - In flight: the existing Future is awaited.
        - Otherwise the caller becomes the creator and runs *work*.
        """
        async with self._lock:
            if key in self._done:
                return self._done[key]
            fut = self._inflight.get(key)
            creator = fut is None
            if fut is None:
                fut = asyncio.get_running_loop().create_future()
                fut.add_done_callback(consume_future_exception)
                self._inflight[key] = fut

        if not creator:
            return await fut

        try:
            value = await work()
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as e:
            fut.set_exception(e)
            raise
        else:
            async with self._lock:
                self._done.clear()
                self._done[key] = value
            fut.set_result(value)
            return value
        finally:
            async with self._lock:
                self._inflight.pop(key, None)
