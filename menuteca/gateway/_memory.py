"""
Memory gateway — in-process tables with PostgREST-like semantics.

Note: For tests, examples and offline development only.
No row-level security; every signed-in user sees every row.
"""

from __future__ import annotations

import asyncio
import copy
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from kungfu import Result, Ok, Error

from menuteca.gateway._types import (
    CallLog,
    Filter,
    GatewayError,
    NOT_FOUND_CODE,
    FOREIGN_KEY_CODE,
    Query,
    Row,
    Rows,
)

type RpcFn = Callable[[MemoryGateway, dict[str, Any]], Any]

_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


# ═══════════════════════════════════════════════════════════════════════════════
# Filter evaluation
# ═══════════════════════════════════════════════════════════════════════════════


def _ilike(value: Any, pattern: str) -> bool:
    if not isinstance(value, str):
        return False
    regex = "^" + ".*".join(re.escape(part) for part in pattern.split("%")) + "$"
    return re.match(regex, value, flags=re.IGNORECASE | re.DOTALL) is not None


def _compare(value: Any, other: Any, op: str) -> bool:
    if value is None or other is None:
        return False
    match op:
        case "gt":
            return value > other
        case "gte":
            return value >= other
        case "lt":
            return value < other
        case _:
            return value <= other


def matches(row: Row, f: Filter) -> bool:
    """Evaluate one filter against a row."""
    value = row.get(f.column)
    match f.op:
        case "eq":
            return value == f.value
        case "neq":
            return value != f.value
        case "gt" | "gte" | "lt" | "lte":
            return _compare(value, f.value, f.op)
        case "ilike":
            return _ilike(value, f.value)
        case "contains":
            return isinstance(value, list) and all(v in value for v in f.value)
        case "in":
            return value in f.value
        case "is":
            return value is f.value
    return False


def _sort_key(column: str) -> Callable[[Row], tuple[bool, Any]]:
    def key(row: Row) -> tuple[bool, Any]:
        value = row.get(column)
        return (value is None, value if value is not None else 0)
    return key


# ═══════════════════════════════════════════════════════════════════════════════
# Fault injection
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class _Fault:
    op: str
    table: str | None
    error: GatewayError

    def applies(self, op: str, table: str) -> bool:
        return self.op == op and (self.table is None or self.table == table)


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Gateway
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryGateway:
    """
    In-memory gateway.

    Example:
        gw = MemoryGateway()
        gw.seed("restaurants", [{"id": "r1", "name": "Can Pep", "owner_id": "u1"}])
        gw.sign_in("u1")
        gw.fail_next("insert", "dishes", GatewayError("500", "boom"))
    """

    def __init__(self, *, latency: float = 0.0) -> None:
        self._tables: dict[str, list[Row]] = {}
        self._rpcs: dict[str, RpcFn] = {}
        self._references: dict[tuple[str, str], str] = {}
        self._faults: list[_Fault] = []
        self._lock = asyncio.Lock()
        self._seq = 0
        self.latency = latency
        self.user_id: str | None = None
        self.log = CallLog()

    # ── setup ───────────────────────────────────────────────────────────────

    def seed(self, table: str, rows: list[Row]) -> None:
        stored = self._tables.setdefault(table, [])
        for row in rows:
            stored.append(self._stamp(copy.deepcopy(row)))

    def rows(self, table: str) -> list[Row]:
        """Snapshot of a table, bypassing counters and faults."""
        return copy.deepcopy(self._tables.get(table, []))

    def references(self, table: str, column: str, target: str) -> None:
        """Declare a foreign key: table.column must match target.id."""
        self._references[(table, column)] = target

    def register_rpc(self, name: str, fn: RpcFn) -> None:
        self._rpcs[name] = fn

    def unregister_rpc(self, name: str) -> None:
        self._rpcs.pop(name, None)

    def sign_in(self, user_id: str) -> None:
        self.user_id = user_id

    def sign_out(self) -> None:
        self.user_id = None

    def fail_next(
        self,
        op: str,
        table: str | None = None,
        error: GatewayError | None = None,
    ) -> None:
        """Make the next matching call fail once."""
        self._faults.append(
            _Fault(op, table, error or GatewayError("500", f"injected {op} failure", 500))
        )

    # ── internals ───────────────────────────────────────────────────────────

    def _stamp(self, row: Row) -> Row:
        self._seq += 1
        row.setdefault("id", uuid.uuid4().hex)
        row.setdefault("created_at", (_EPOCH + timedelta(seconds=self._seq)).isoformat())
        return row

    async def _enter(self, op: str, table: str) -> GatewayError | None:
        self.log.record(op, table)
        await asyncio.sleep(self.latency)
        for fault in self._faults:
            if fault.applies(op, table):
                self._faults.remove(fault)
                return fault.error
        return None

    def _select_rows(self, table: str, filters: tuple[Filter, ...]) -> list[Row]:
        return [r for r in self._tables.get(table, []) if all(matches(r, f) for f in filters)]

    def _check_references(self, table: str, row: Row) -> GatewayError | None:
        for (ref_table, column), target in self._references.items():
            if ref_table != table or row.get(column) is None:
                continue
            if not any(r.get("id") == row[column] for r in self._tables.get(target, [])):
                return GatewayError(
                    FOREIGN_KEY_CODE,
                    f'insert or update on table "{table}" violates foreign key constraint on "{column}"',
                    409,
                )
        return None

    # ── Gateway protocol ────────────────────────────────────────────────────

    async def select(self, query: Query) -> Result[Rows, GatewayError]:
        if (fault := await self._enter("select", query.table)) is not None:
            return Error(fault)

        found = self._select_rows(query.table, query.filters)
        if query.order is not None:
            found = sorted(found, key=_sort_key(query.order), reverse=query.descending)
        total = len(found)
        start = query.offset or 0
        end = start + query.limit if query.limit is not None else None
        page = copy.deepcopy(found[start:end])

        if query.single and len(page) != 1:
            return Error(GatewayError(
                NOT_FOUND_CODE,
                "JSON object requested, multiple (or no) rows returned",
                406,
            ))
        return Ok(Rows(page, total if query.count else None))

    async def insert(self, table: str, rows: list[Row]) -> Result[list[Row], GatewayError]:
        if (fault := await self._enter("insert", table)) is not None:
            return Error(fault)

        async with self._lock:
            for row in rows:
                if (err := self._check_references(table, row)) is not None:
                    return Error(err)
            stored = [self._stamp(copy.deepcopy(row)) for row in rows]
            self._tables.setdefault(table, []).extend(stored)
            return Ok(copy.deepcopy(stored))

    async def update(
        self, table: str, patch: Row, filters: tuple[Filter, ...]
    ) -> Result[list[Row], GatewayError]:
        if (fault := await self._enter("update", table)) is not None:
            return Error(fault)

        async with self._lock:
            targets = self._select_rows(table, filters)
            for row in targets:
                row.update(copy.deepcopy(patch))
            return Ok(copy.deepcopy(targets))

    async def delete(self, table: str, filters: tuple[Filter, ...]) -> Result[int, GatewayError]:
        if (fault := await self._enter("delete", table)) is not None:
            return Error(fault)

        async with self._lock:
            targets = self._select_rows(table, filters)
            self._tables[table] = [r for r in self._tables.get(table, []) if r not in targets]
            return Ok(len(targets))

    async def rpc(self, name: str, args: dict[str, Any]) -> Result[Any, GatewayError]:
        if (fault := await self._enter("rpc", name)) is not None:
            return Error(fault)

        fn = self._rpcs.get(name)
        if fn is None:
            return Error(GatewayError(
                "PGRST202", f"Could not find the function public.{name}", 404
            ))
        return Ok(fn(self, args))

    async def current_user(self) -> Result[str | None, GatewayError]:
        if (fault := await self._enter("auth", "user")) is not None:
            return Error(fault)
        return Ok(self.user_id)


__all__ = ("MemoryGateway", "RpcFn", "matches")
