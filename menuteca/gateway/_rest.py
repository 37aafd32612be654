"""
REST gateway — PostgREST-over-HTTP client (Supabase-style hosted backend).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from kungfu import Result, Ok, Error

from menuteca.gateway._types import (
    Filter,
    GatewayError,
    NOT_FOUND_CODE,
    Query,
    Row,
    Rows,
)

logger = logging.getLogger(__name__)

_SINGLE_ACCEPT = "application/vnd.pgrst.object+json"


# ═══════════════════════════════════════════════════════════════════════════════
# Query translation
# ═══════════════════════════════════════════════════════════════════════════════


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _array(values: list[Any]) -> str:
    return "{" + ",".join(json.dumps(v) if isinstance(v, str) else _literal(v) for v in values) + "}"


def filter_param(f: Filter) -> tuple[str, str]:
    """Render one filter as a PostgREST query parameter."""
    match f.op:
        case "ilike":
            return f.column, f"ilike.{str(f.value).replace('%', '*')}"
        case "contains":
            return f.column, f"cs.{_array(f.value)}"
        case "in":
            return f.column, "in.(" + ",".join(_literal(v) for v in f.value) + ")"
        case "is":
            return f.column, f"is.{_literal(f.value)}"
        case _:
            return f.column, f"{f.op}.{_literal(f.value)}"


def query_params(query: Query) -> list[tuple[str, str]]:
    params = [("select", query.columns)]
    params.extend(filter_param(f) for f in query.filters)
    if query.order is not None:
        direction = "desc" if query.descending else "asc"
        params.append(("order", f"{query.order}.{direction}"))
    return params


def _content_range_total(header: str | None) -> int | None:
    # "0-19/137" or "*/0"
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


def error_from_response(response: httpx.Response) -> GatewayError:
    """Map an HTTP error response to GatewayError."""
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    code = str(body.get("code") or status)
    message = body.get("message") or body.get("msg") or response.reason_phrase
    if status == 429:
        message = f"Too many requests: {message}"
    return GatewayError(code, message, status)


# ═══════════════════════════════════════════════════════════════════════════════
# REST Gateway
# ═══════════════════════════════════════════════════════════════════════════════


class RestGateway:
    """
    Gateway against a PostgREST endpoint.

    Example:
        async with httpx.AsyncClient(timeout=10.0) as client:
            gw = RestGateway(client, base_url=settings.gateway_url, api_key=key)
            rows = await gw.select(Query("cuisines").order_by("created_at"))

    Note: The only client-side bound on a call is the httpx timeout.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        api_key: str,
        access_token: str | None = None,
    ) -> None:
        self._client = client
        self._base = base_url.rstrip("/")
        self._api_key = api_key
        self.access_token = access_token

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self.access_token or self._api_key}",
        }
        headers.update(extra)
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Result[httpx.Response, GatewayError]:
        try:
            response = await self._client.request(
                method,
                f"{self._base}{path}",
                params=params,
                json=body,
                headers=headers or self._headers(),
            )
        except httpx.HTTPError as e:
            logger.warning("Gateway request failed: %s %s: %s", method, path, e)
            return Error(GatewayError("network", str(e) or e.__class__.__name__))

        if response.is_error:
            err = error_from_response(response)
            logger.warning(
                "Gateway error: %s %s -> %s %s", method, path, err.status, err.code
            )
            return Error(err)
        return Ok(response)

    # ── Gateway protocol ────────────────────────────────────────────────────

    async def select(self, query: Query) -> Result[Rows, GatewayError]:
        extra: dict[str, str] = {}
        if query.count:
            extra["Prefer"] = "count=exact"
        if query.limit is not None:
            start = query.offset or 0
            extra["Range-Unit"] = "items"
            extra["Range"] = f"{start}-{start + query.limit - 1}"
        if query.single:
            extra["Accept"] = _SINGLE_ACCEPT

        result = await self._send(
            "GET",
            f"/rest/v1/{query.table}",
            params=query_params(query),
            headers=self._headers(**extra),
        )
        match result:
            case Ok(response):
                payload = response.json()
                data = [payload] if query.single else list(payload)
                total = _content_range_total(response.headers.get("Content-Range"))
                return Ok(Rows(data, total if query.count else None))
            case Error(err):
                if query.single and err.status == 406:
                    return Error(GatewayError(NOT_FOUND_CODE, err.message, 406))
                return Error(err)

    async def insert(self, table: str, rows: list[Row]) -> Result[list[Row], GatewayError]:
        result = await self._send(
            "POST",
            f"/rest/v1/{table}",
            body=rows,
            headers=self._headers(Prefer="return=representation"),
        )
        return result.map(lambda response: list(response.json()))

    async def update(
        self, table: str, patch: Row, filters: tuple[Filter, ...]
    ) -> Result[list[Row], GatewayError]:
        result = await self._send(
            "PATCH",
            f"/rest/v1/{table}",
            params=[filter_param(f) for f in filters],
            body=patch,
            headers=self._headers(Prefer="return=representation"),
        )
        return result.map(lambda response: list(response.json()))

    async def delete(self, table: str, filters: tuple[Filter, ...]) -> Result[int, GatewayError]:
        result = await self._send(
            "DELETE",
            f"/rest/v1/{table}",
            params=[filter_param(f) for f in filters],
            headers=self._headers(Prefer="return=representation"),
        )
        return result.map(lambda response: len(response.json() or []))

    async def rpc(self, name: str, args: dict[str, Any]) -> Result[Any, GatewayError]:
        result = await self._send("POST", f"/rest/v1/rpc/{name}", body=args)
        return result.map(lambda response: response.json())

    async def current_user(self) -> Result[str | None, GatewayError]:
        if self.access_token is None:
            return Ok(None)
        result = await self._send("GET", "/auth/v1/user")
        match result:
            case Ok(response):
                return Ok(response.json().get("id"))
            case Error(err):
                if err.status == 401:
                    return Ok(None)
                return Error(err)


__all__ = ("RestGateway", "filter_param", "query_params", "error_from_response")
