"""
Gateway types — the remote data boundary as seen by the stores.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Protocol

from kungfu import Result

# ═══════════════════════════════════════════════════════════════════════════════
# Rows
# ═══════════════════════════════════════════════════════════════════════════════

type Row = dict[str, Any]

NOT_FOUND_CODE = "PGRST116"
FOREIGN_KEY_CODE = "23503"
RATE_LIMITED_STATUS = 429


@dataclass(frozen=True, slots=True)
class Rows:
    """Select response: rows plus the exact count when requested."""

    data: list[Row]
    count: int | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Query
# ═══════════════════════════════════════════════════════════════════════════════

type FilterOp = Literal[
    "eq", "neq", "gt", "gte", "lt", "lte", "ilike", "contains", "in", "is"
]


@dataclass(frozen=True, slots=True)
class Filter:
    """Single column predicate."""

    column: str
    op: FilterOp
    value: Any


@dataclass(frozen=True, slots=True)
class Query:
    """
    Table-style select.

    Immutable — each helper returns a new Query.

    Example:
        q = (
            Query("menus")
            .eq("restaurant_id", rid)
            .is_null("deleted_at")
            .order_by("created_at")
        )
    """

    table: str
    columns: str = "*"
    filters: tuple[Filter, ...] = ()
    order: str | None = None
    descending: bool = False
    offset: int | None = None
    limit: int | None = None
    count: bool = False
    single: bool = False

    def where(self, column: str, op: FilterOp, value: Any) -> Query:
        return replace(self, filters=(*self.filters, Filter(column, op, value)))

    def eq(self, column: str, value: Any) -> Query:
        return self.where(column, "eq", value)

    def gte(self, column: str, value: Any) -> Query:
        return self.where(column, "gte", value)

    def lte(self, column: str, value: Any) -> Query:
        return self.where(column, "lte", value)

    def ilike(self, column: str, pattern: str) -> Query:
        return self.where(column, "ilike", pattern)

    def contains(self, column: str, values: list[Any]) -> Query:
        return self.where(column, "contains", list(values))

    def in_(self, column: str, values: list[Any]) -> Query:
        return self.where(column, "in", list(values))

    def is_null(self, column: str) -> Query:
        return self.where(column, "is", None)

    def order_by(self, column: str, *, descending: bool = False) -> Query:
        return replace(self, order=column, descending=descending)

    def range(self, start: int, end: int) -> Query:
        """Inclusive row range, like PostgREST's Range header."""
        return replace(self, offset=start, limit=end - start + 1)

    def first(self, n: int) -> Query:
        return replace(self, offset=None, limit=n)

    def with_count(self) -> Query:
        return replace(self, count=True)

    def single_row(self) -> Query:
        """Exactly one row expected; zero rows is a NOT_FOUND_CODE error."""
        return replace(self, single=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class GatewayError:
    """Backend failure as reported by the gateway."""

    code: str
    message: str
    status: int | None = None

    @property
    def is_not_found(self) -> bool:
        return self.code == NOT_FOUND_CODE

    @property
    def is_rate_limited(self) -> bool:
        return (
            self.status == RATE_LIMITED_STATUS
            or "too many requests" in self.message.lower()
        )

    @property
    def is_foreign_key(self) -> bool:
        return self.code == FOREIGN_KEY_CODE

    def __str__(self) -> str:
        return self.message


def exception_error(exc: Exception) -> GatewayError:
    """Wrap a stray exception raised at the gateway boundary."""
    return GatewayError("exception", str(exc) or exc.__class__.__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway Protocol — Implementations Provide This
# ═══════════════════════════════════════════════════════════════════════════════


class Gateway(Protocol):
    """
    Remote data gateway protocol.

    All methods return Result; implementations should not raise, but stores
    guard every call anyway (see menuteca.lift.guarded).
    """

    async def select(self, query: Query) -> Result[Rows, GatewayError]:
        """Run a select. single=True yields exactly one row or NOT_FOUND_CODE."""
        ...

    async def insert(
        self, table: str, rows: list[Row]
    ) -> Result[list[Row], GatewayError]:
        """Insert rows, returning their stored representation."""
        ...

    async def update(
        self, table: str, patch: Row, filters: tuple[Filter, ...]
    ) -> Result[list[Row], GatewayError]:
        """Update matching rows, returning their new representation."""
        ...

    async def delete(
        self, table: str, filters: tuple[Filter, ...]
    ) -> Result[int, GatewayError]:
        """Delete matching rows. Returns count."""
        ...

    async def rpc(self, name: str, args: dict[str, Any]) -> Result[Any, GatewayError]:
        """Call a remote function."""
        ...

    async def current_user(self) -> Result[str | None, GatewayError]:
        """Signed-in user id, None when anonymous."""
        ...


def eq(column: str, value: Any) -> tuple[Filter, ...]:
    """Filter tuple for the common `.eq(id)` write target."""
    return (Filter(column, "eq", value),)


@dataclass(slots=True)
class CallLog:
    """Per-operation call counters, keyed by `op:table`."""

    calls: dict[str, int] = field(default_factory=dict[str, int])

    def record(self, op: str, target: str) -> None:
        key = f"{op}:{target}"
        self.calls[key] = self.calls.get(key, 0) + 1

    def count(self, op: str, target: str | None = None) -> int:
        if target is not None:
            return self.calls.get(f"{op}:{target}", 0)
        return sum(n for k, n in self.calls.items() if k.startswith(f"{op}:"))

    def reset(self) -> None:
        self.calls.clear()


__all__ = (
    "Row",
    "Rows",
    "FilterOp",
    "Filter",
    "Query",
    "GatewayError",
    "exception_error",
    "Gateway",
    "CallLog",
    "eq",
    "NOT_FOUND_CODE",
    "FOREIGN_KEY_CODE",
    "RATE_LIMITED_STATUS",
)
