"""
Store types — error taxonomy and observable state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from menuteca.gateway import GatewayError

# ═══════════════════════════════════════════════════════════════════════════════
# Error Kinds — Closed Set
# ═══════════════════════════════════════════════════════════════════════════════


class StoreErrorKind(Enum):
    """What went wrong, so callers branch on kind instead of message text."""

    NOT_AUTHENTICATED = auto()  # no signed-in user
    NOT_FOUND = auto()  # gateway "no rows"
    NOT_AUTHORIZED = auto()  # ownership check failed
    RATE_LIMITED = auto()  # gateway throttled us
    VALIDATION = auto()  # caller passed bad params
    GATEWAY = auto()  # everything else, message passed through


@dataclass(frozen=True, slots=True)
class StoreError:
    """Store action error: kind plus a human-readable message."""

    kind: StoreErrorKind
    message: str

    def __str__(self) -> str:
        return self.message


class StoreErrors:
    """
    StoreError constructors.

    Example:
        return Error(StoreErrors.not_found("Restaurant not found"))
    """

    @staticmethod
    def not_authenticated(message: str = "User not authenticated") -> StoreError:
        return StoreError(StoreErrorKind.NOT_AUTHENTICATED, message)

    @staticmethod
    def not_found(message: str) -> StoreError:
        return StoreError(StoreErrorKind.NOT_FOUND, message)

    @staticmethod
    def not_authorized(message: str) -> StoreError:
        return StoreError(StoreErrorKind.NOT_AUTHORIZED, message)

    @staticmethod
    def rate_limited(message: str = "Too many requests") -> StoreError:
        return StoreError(StoreErrorKind.RATE_LIMITED, message)

    @staticmethod
    def validation(message: str) -> StoreError:
        return StoreError(StoreErrorKind.VALIDATION, message)

    @staticmethod
    def gateway(message: str) -> StoreError:
        return StoreError(StoreErrorKind.GATEWAY, message)

    @staticmethod
    def unexpected(exc: Exception) -> StoreError:
        return StoreError(StoreErrorKind.GATEWAY, str(exc) or exc.__class__.__name__)


def from_gateway(error: GatewayError, *, not_found: str | None = None) -> StoreError:
    """
    Map a gateway failure onto the store taxonomy.

    not_found overrides the message for the "no rows" code, e.g.
    "Restaurant not found".
    """
    if error.is_not_found:
        return StoreErrors.not_found(not_found or error.message)
    if error.is_rate_limited:
        return StoreErrors.rate_limited(error.message)
    return StoreErrors.gateway(error.message)


# ═══════════════════════════════════════════════════════════════════════════════
# Store State — Read Snapshot
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class StoreState:
    """
    Snapshot of a store's bookkeeping.

    is_loading is True while at least one remote read is outstanding.
    rate_limited / rate_limit_reset_at mirror the store's rate-limit gate.
    """

    is_loading: bool = False
    error: StoreError | None = None
    last_error_at: float | None = None
    failure_count: int = 0
    rate_limited: bool = False
    rate_limit_reset_at: float | None = None

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error is not None else None


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "StoreErrorKind",
    "StoreError",
    "StoreErrors",
    "from_gateway",
    "StoreState",
)
