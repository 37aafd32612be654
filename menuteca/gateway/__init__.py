"""
Gateway — the hosted backend boundary (table CRUD, RPC, auth identity).

    from menuteca import gateway as GW

    gw = GW.MemoryGateway()
    rows = await gw.select(GW.Query("menus").eq("restaurant_id", rid))
"""

from __future__ import annotations

from menuteca.gateway._types import (
    Row,
    Rows,
    Filter,
    FilterOp,
    Query,
    GatewayError,
    exception_error,
    Gateway,
    CallLog,
    eq,
    NOT_FOUND_CODE,
    FOREIGN_KEY_CODE,
    RATE_LIMITED_STATUS,
)
from menuteca.gateway._memory import MemoryGateway, RpcFn
from menuteca.gateway._rest import RestGateway

__all__ = (
    "Row",
    "Rows",
    "Filter",
    "FilterOp",
    "Query",
    "GatewayError",
    "exception_error",
    "Gateway",
    "CallLog",
    "eq",
    "NOT_FOUND_CODE",
    "FOREIGN_KEY_CODE",
    "RATE_LIMITED_STATUS",
    "MemoryGateway",
    "RpcFn",
    "RestGateway",
)
