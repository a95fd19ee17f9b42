"""Single-flight coalescing of concurrent identical operations."""

import asyncio
from typing import Any, Awaitable, Callable, Dict


class SingleFlight:
    """
    Share one in-flight future per key.

    Callers arriving while an operation for the same key is running await the
    same result (or exception) instead of starting a second operation. The
    key is forgotten as soon as the operation settles, so nothing is cached
    here.

    A caller cancelling its wait does not cancel the shared operation for the
    others.
    """

    def __init__(self):
        self._inflight: Dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(fn())
            self._inflight[key] = future
            future.add_done_callback(lambda _f, k=key: self._forget(k, _f))
        return await asyncio.shield(future)

    def _forget(self, key: str, future: asyncio.Future) -> None:
        if self._inflight.get(key) is future:
            del self._inflight[key]
        # Retrieve the exception so an unawaited failure is not reported as lost
        if not future.cancelled():
            future.exception()
