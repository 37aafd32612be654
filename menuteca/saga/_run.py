"""
Saga execution with automatic rollback.
"""

from __future__ import annotations

import logging
from typing import Any

from kungfu import Result, Ok, Error

from menuteca.saga._types import (
    SagaStep,
    SagaResult,
    SagaError,
    Then,
    CompensatorWithValue,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Rollback Log
# ═══════════════════════════════════════════════════════════════════════════════

type RecordedCompensator[T] = tuple[str, T, CompensatorWithValue[T]]


class _Rollback:
    """Undo actions of completed steps, in completion order."""

    def __init__(self) -> None:
        self.recorded: list[RecordedCompensator[Any]] = []
        self.steps = 0

    async def attempt[T, E](self, step: SagaStep[T, E]) -> Result[T, E]:
        self.steps += 1
        return await run_step(step, self.recorded)

    def done[T](self, value: T) -> Ok[SagaResult[T]]:
        return Ok(SagaResult(
            value=value,
            steps_executed=self.steps,
            compensators_recorded=len(self.recorded),
        ))

    async def unwind[E](self, error: E) -> Error[SagaError[E]]:
        comp_run, comp_failed = await run_compensators(self.recorded)
        if comp_failed:
            logger.error(
                "Saga rollback incomplete after step %d: %d of %d compensators failed",
                self.steps,
                comp_failed,
                comp_run + comp_failed,
            )
        return Error(SagaError(
            error=error,
            step_failed=self.steps,
            compensators_run=comp_run,
            compensators_failed=comp_failed,
            rollback_complete=comp_failed == 0,
        ))


# ═══════════════════════════════════════════════════════════════════════════════
# Steps and Compensators
# ═══════════════════════════════════════════════════════════════════════════════


async def run_step[T, E](
    step: SagaStep[T, E],
    compensators: list[RecordedCompensator[T]],
) -> Result[T, E]:
    """Execute single step, recording its compensator on success."""
    result = await step.action
    match result:
        case Ok(value):
            if step.compensate is not None:
                compensators.append((step.name, value, step.compensate))
            logger.debug("Saga step %r done", step.name)
        case Error(e):
            logger.warning("Saga step %r failed: %s", step.name, e)
    return result


async def run_compensators[T](
    compensators: list[RecordedCompensator[T]],
) -> tuple[int, int]:
    """
    Run compensators newest first. Returns (run, failed).

    A raising compensator is counted and logged; the older ones still run.
    """
    comp_run = 0
    comp_failed = 0

    for name, value, comp in reversed(compensators):
        try:
            await comp(value)
        except Exception:
            comp_failed += 1
            logger.exception("Saga compensation for %r failed", name)
        else:
            comp_run += 1
            logger.warning("Saga compensated %r", name)

    return comp_run, comp_failed


# ═══════════════════════════════════════════════════════════════════════════════
# run() / run_chain()
# ═══════════════════════════════════════════════════════════════════════════════


async def run[T, E](
    saga: SagaStep[T, E],
) -> Result[SagaResult[T], SagaError[E]]:
    """Execute a single step. A failed first step has nothing to roll back."""
    rollback = _Rollback()
    match await rollback.attempt(saga):
        case Ok(value):
            return rollback.done(value)
        case Error(e):
            return await rollback.unwind(e)


async def run_chain[T, U, E, E2](
    chain: Then[T, U, E, E2],
) -> Result[SagaResult[U], SagaError[E | E2]]:
    """
    Execute two chained steps; the second is built from the first's value.

    When the second step fails, the first one's compensator runs.

    Example:
        from menuteca import saga as S

        result = await S.run_chain(insert_menu.then(insert_dishes))

        match result:
            case Ok(r):
                menu_id = r.value
            case Error(e):
                # e.step_failed == 2 → the menu row was deleted again
                ...
    """
    rollback = _Rollback()

    match await rollback.attempt(chain.inner):
        case Error(e):
            return await rollback.unwind(e)
        case Ok(value):
            pass

    match await rollback.attempt(chain.f(value)):
        case Ok(final_value):
            return rollback.done(final_value)
        case Error(e):
            return await rollback.unwind(e)


__all__ = ("run", "run_chain", "run_step", "run_compensators")
