"""Tests for compensated multi-step writes."""

from __future__ import annotations

import pytest
from kungfu import Error, LazyCoroResult, Ok

from menuteca import lift as L
from menuteca import saga as S
from menuteca.saga._run import run_compensators


def succeed[T](value: T) -> LazyCoroResult[T, str]:
    return L.settled(Ok(value))


def fail(error: str) -> LazyCoroResult[object, str]:
    return L.settled(Error(error))


class TestRunChain:
    @pytest.mark.asyncio
    async def test_both_steps_succeed(self):
        undone: list[str] = []

        async def undo(value: str) -> None:
            undone.append(value)

        saga = S.step(succeed("menu-1"), undo, name="insert menu").then(
            lambda menu_id: S.step(succeed(f"{menu_id}/dishes"), undo, name="insert dishes")
        )

        result = await S.run_chain(saga)

        done = result.unwrap()
        assert done.value == "menu-1/dishes"
        assert done.steps_executed == 2
        assert done.compensators_recorded == 2
        assert undone == []

    @pytest.mark.asyncio
    async def test_second_step_failure_compensates_first(self):
        undone: list[str] = []

        async def undo(value: str) -> None:
            undone.append(value)

        saga = S.step(succeed("menu-1"), undo, name="insert menu").then(
            lambda _: S.step(fail("dish insert rejected"), undo, name="insert dishes")
        )

        result = await S.run_chain(saga)

        failure = result.unwrap_err()
        assert failure.error == "dish insert rejected"
        assert failure.step_failed == 2
        assert failure.compensators_run == 1
        assert failure.compensators_failed == 0
        assert failure.rollback_complete is True
        assert undone == ["menu-1"]

    @pytest.mark.asyncio
    async def test_first_step_failure_skips_second(self):
        started: list[str] = []

        def next_step(value: object) -> S.SagaStep[object, str]:
            started.append("second")
            return S.step(succeed(value))

        result = await S.run_chain(S.step(fail("no menu")).then(next_step))

        failure = result.unwrap_err()
        assert failure.step_failed == 1
        assert failure.compensators_run == 0
        assert started == []

    @pytest.mark.asyncio
    async def test_raising_compensator_marks_rollback_incomplete(self):
        async def broken_undo(_: str) -> None:
            raise RuntimeError("backend unreachable")

        saga = S.step(succeed("menu-1"), broken_undo).then(
            lambda _: S.step(fail("dish insert rejected"))
        )

        failure = (await S.run_chain(saga)).unwrap_err()

        assert failure.compensators_run == 0
        assert failure.compensators_failed == 1
        assert failure.rollback_complete is False


class TestRun:
    @pytest.mark.asyncio
    async def test_single_step(self):
        result = await S.run(S.step(succeed(42)))

        done = result.unwrap()
        assert done.value == 42
        assert done.steps_executed == 1
        assert done.compensators_recorded == 0

    @pytest.mark.asyncio
    async def test_from_async_maps_exceptions(self):
        async def upload() -> str:
            raise ValueError("disk full")

        step = S.from_async(upload, on_error=lambda e: f"upload failed: {e}")
        failure = (await S.run(step)).unwrap_err()

        assert failure.error == "upload failed: disk full"
        assert failure.step_failed == 1


class TestCompensators:
    @pytest.mark.asyncio
    async def test_run_in_reverse_and_continue_past_failures(self):
        order: list[str] = []

        def undo(label: str):
            async def compensate(value: str) -> None:
                order.append(label)
                if label == "middle":
                    raise RuntimeError("cannot undo")

            return compensate

        recorded = [
            ("first", "a", undo("first")),
            ("middle", "b", undo("middle")),
            ("last", "c", undo("last")),
        ]

        comp_run, comp_failed = await run_compensators(recorded)

        assert order == ["last", "middle", "first"]
        assert (comp_run, comp_failed) == (2, 1)
