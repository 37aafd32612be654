"""
Building saga steps from store writes.
"""

from __future__ import annotations

from collections.abc import Callable, Awaitable
from kungfu import LazyCoroResult
from combinators import lift as L

from menuteca.saga._types import SagaStep, CompensatorWithValue

# ═══════════════════════════════════════════════════════════════════════════════
# From a LazyCoroResult
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: CompensatorWithValue[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Create a compensated saga step.

    Args:
        action: The write to perform (LazyCoroResult)
        compensate: Undo for that write if a later step fails
        name: Label used in rollback logs

    Example:
        from menuteca import saga as S

        insert_menu = S.step(
            action=insert_menu_row(restaurant_id, draft),
            compensate=lambda row: delete_menu_row(row["id"]),
            name="insert menu",
        )

        create = insert_menu.then(lambda row: S.step(
            action=insert_dish_rows(row["id"], draft.dishes),
            compensate=lambda dishes: delete_dish_rows(row["id"]),
            name="insert dishes",
        ))
    """
    return SagaStep(action=action, compensate=compensate, name=name)


# ═══════════════════════════════════════════════════════════════════════════════
# From a raising coroutine
# ═══════════════════════════════════════════════════════════════════════════════


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: CompensatorWithValue[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Create step from an async callable that raises on failure.

    Example:
        S.from_async(
            lambda: upload_photo(path),
            on_error=lambda e: StoreErrors.gateway(str(e)),
            compensate=remove_photo,
        )
    """
    return SagaStep(
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
        name=name,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("step", "from_async")
