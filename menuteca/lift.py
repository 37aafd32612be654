"""
Lift — getting gateway calls into LazyCoroResult.

Stores never let an exception cross a store action. Gateway calls already
return Result and go through guarded(); steps whose outcome is already known
go through settled().
"""

from __future__ import annotations

from collections.abc import Callable, Awaitable

from kungfu import LazyCoroResult, Result, Error



def guarded[T, E](
    result_fn: Callable[[], Awaitable[Result[T, E]]],
    on_error: Callable[[Exception], E],
) -> LazyCoroResult[T, E]:
    """
    Lift a call that already returns Result, converting stray exceptions.

    Gateways report failures as Error values, but a broken transport or a
    buggy custom gateway may still raise. Either way the caller sees a Result.

    Example:
        rows = await L.guarded(
            lambda: gateway.select(query),
            on_error=exception_error,
        )
    """
    async def _run() -> Result[T, E]:
        try:
            return await result_fn()
        except Exception as exc:
            return Error(on_error(exc))
    return LazyCoroResult(_run)


def settled[T, E](result: Result[T, E]) -> LazyCoroResult[T, E]:
    """An already known Result as a step, e.g. a write with nothing to send."""
    async def _run() -> Result[T, E]:
        return result
    return LazyCoroResult(_run)


__all__ = (
    "guarded",
    "settled",
)
