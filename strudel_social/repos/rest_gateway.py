"""Gateway over the hosted PostgREST data API (Supabase /rest/v1)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from strudel_social import config
from strudel_social.models.user import ANONYMOUS, Authenticated, SessionUser
from strudel_social.repos.gateway import Filters, GatewayError, Order, Row, check_columns, check_table

logger = logging.getLogger(__name__)


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def build_params(table: str, filters: Filters | None = None, order: Order | None = None) -> dict[str, str]:
    """Translate equality filters and ordering into PostgREST query params."""
    filters = filters or {}
    columns = list(filters)
    if order is not None:
        columns.append(order.column)
    check_columns(table, columns)

    params = {column: _filter_value(value) for column, value in filters.items()}
    if order is not None:
        params["order"] = f"{order.column}.{'desc' if order.descending else 'asc'}"
    return params


class RestGateway:
    """PostgREST client.

    Requests carry the project's anon key as `apikey`. The bearer token is
    the signed-in user's access token when there is one, so the store's RLS
    policies see the right `auth.uid()`; otherwise the anon key.
    """

    def __init__(
        self,
        settings: config.Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or config.settings
        self._transport = transport

    def _headers(self, user: SessionUser) -> dict[str, str]:
        anon_key = self._settings.SUPABASE_ANON_KEY
        token = anon_key
        if isinstance(user, Authenticated) and user.access_token:
            token = user.access_token
        return {
            "apikey": anon_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._settings.REST_URL,
            timeout=self._settings.HTTP_TIMEOUT,
            transport=self._transport,
        )

    async def _request(self, operation: str, table: str, method: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, f"/{table}", **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.warning("rest_gateway: %s %s -> %s %s", operation, table, e.response.status_code, detail)
            raise GatewayError(operation, table, detail, e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.warning("rest_gateway: %s %s transport error: %s", operation, table, e)
            raise GatewayError(operation, table, str(e)) from e

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Order | None = None,
        user: SessionUser = ANONYMOUS,
    ) -> list[Row]:
        params = {"select": "*", **build_params(table, filters, order)}
        response = await self._request("select", table, "GET", params=params, headers=self._headers(user))
        return response.json()

    async def insert(self, table: str, rows: list[Row], user: SessionUser = ANONYMOUS) -> list[Row]:
        check_table(table)
        for row in rows:
            check_columns(table, row)
        headers = {**self._headers(user), "Prefer": "return=representation"}
        response = await self._request("insert", table, "POST", json=rows, headers=headers)
        return response.json()

    async def delete(self, table: str, filters: Filters, user: SessionUser = ANONYMOUS) -> None:
        if not filters:
            raise ValueError("delete requires at least one filter")
        params = build_params(table, filters)
        await self._request("delete", table, "DELETE", params=params, headers=self._headers(user))


def _error_detail(response: httpx.Response) -> str:
    """PostgREST errors are JSON with a `message`; fall back to the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return body.get("message") or body.get("msg") or str(body)
    return str(body)
