"""
Saga — multi-step remote writes with compensation.

The backend offers no multi-statement transactions, so a write that spans
tables (menu row, then dish rows) records an undo for every completed step
and replays them in reverse when a later step fails.

    from menuteca import saga as S

    saga = S.step(insert_menu, delete_menu).then(lambda row: S.step(insert_dishes(row), delete_dishes))
    result = await S.run_chain(saga)
"""

from __future__ import annotations

from menuteca.saga._types import (
    CompensatorWithValue,
    SagaStep,
    SagaResult,
    SagaError,
    Then,
)
from menuteca.saga._step import step, from_async
from menuteca.saga._run import run, run_chain

__all__ = (
    "CompensatorWithValue",
    "SagaStep",
    "SagaResult",
    "SagaError",
    "Then",
    "step",
    "from_async",
    "run",
    "run_chain",
)
