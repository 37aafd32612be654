"""
In-flight registry — one pending fetch per cache key.

A second caller asking for a key that is already being fetched awaits the
same task instead of issuing its own gateway call.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from kungfu import Result


class InFlight[T, E]:
    """
    Single-flight map of key → pending task.

    Note: Waiters are shielded; cancelling one caller never cancels the
    shared fetch, which still settles and writes its result.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Result[T, E]]] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    async def join(
        self,
        key: str,
        start: Callable[[], Awaitable[Result[T, E]]],
    ) -> tuple[Result[T, E], bool]:
        """
        Await the pending task for key, starting one if none exists.

        Returns (result, shared) where shared is True when this caller
        joined a fetch started by someone else.
        """
        pending = self._pending.get(key)
        if pending is not None:
            return await asyncio.shield(pending), True

        async def _run() -> Result[T, E]:
            try:
                return await start()
            finally:
                # Drop the key before waiters resume so a caller arriving
                # after settlement starts a new fetch.
                if self._pending.get(key) is task:
                    del self._pending[key]

        task = asyncio.ensure_future(_run())
        self._pending[key] = task
        return await asyncio.shield(task), False


__all__ = ("InFlight",)
