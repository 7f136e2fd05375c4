"""Gateway over a direct Postgres connection (asyncpg, RLS-scoped)."""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from typing import Any

import asyncpg

from strudel_social import db
from strudel_social.models.user import ANONYMOUS, Authenticated, SessionUser
from strudel_social.repos.gateway import Filters, GatewayError, Order, Row, check_columns, check_table

logger = logging.getLogger(__name__)


def _where(filters: Filters, start: int = 1) -> tuple[str, list[Any]]:
    clauses = []
    args: list[Any] = []
    for column, value in filters.items():
        if value is None:
            clauses.append(f"{column} IS NULL")
        else:
            args.append(value)
            clauses.append(f"{column} = ${start + len(args) - 1}")
    if not clauses:
        return "", args
    return " WHERE " + " AND ".join(clauses), args


def build_select(table: str, filters: Filters | None = None, order: Order | None = None) -> tuple[str, list[Any]]:
    """Build a parameterised SELECT. Identifiers are checked against TABLE_COLUMNS."""
    filters = filters or {}
    columns = list(filters)
    if order is not None:
        columns.append(order.column)
    check_columns(table, columns)

    where, args = _where(filters)
    sql = f"SELECT * FROM {table}{where}"  # nosec B608
    if order is not None:
        sql += f" ORDER BY {order.column} {'DESC' if order.descending else 'ASC'}"
    return sql, args


def build_insert(table: str, row: Row) -> tuple[str, list[Any]]:
    check_columns(table, row)
    if not row:
        raise ValueError("insert requires at least one column")
    columns = list(row)
    placeholders = ", ".join(f"${i + 1}" for i in range(len(columns)))
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *"  # nosec B608
    return sql, [row[c] for c in columns]


def build_delete(table: str, filters: Filters) -> tuple[str, list[Any]]:
    if not filters:
        raise ValueError("delete requires at least one filter")
    check_columns(table, filters)
    where, args = _where(filters)
    return f"DELETE FROM {table}{where}", args  # nosec B608


def _conn_for(user: SessionUser) -> AbstractAsyncContextManager[asyncpg.Connection]:
    if isinstance(user, Authenticated):
        return db.user_conn(user.id)
    return db.system_conn()


class PgGateway:
    """Same call shape as RestGateway, executed as SQL on the shared pool.

    Requires db.init_pool() to have been awaited.
    """

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Order | None = None,
        user: SessionUser = ANONYMOUS,
    ) -> list[Row]:
        sql, args = build_select(table, filters, order)
        try:
            async with _conn_for(user) as conn:
                rows = await conn.fetch(sql, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.warning("pg_gateway: select %s failed: %s", table, e)
            raise GatewayError("select", table, str(e)) from e
        return [dict(row) for row in rows]

    async def insert(self, table: str, rows: list[Row], user: SessionUser = ANONYMOUS) -> list[Row]:
        check_table(table)
        statements = [build_insert(table, row) for row in rows]
        inserted: list[Row] = []
        try:
            # One transaction: either every row lands or none does.
            async with _conn_for(user) as conn:
                for sql, args in statements:
                    record = await conn.fetchrow(sql, *args)
                    inserted.append(dict(record))
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.warning("pg_gateway: insert %s failed: %s", table, e)
            raise GatewayError("insert", table, str(e)) from e
        return inserted

    async def delete(self, table: str, filters: Filters, user: SessionUser = ANONYMOUS) -> None:
        sql, args = build_delete(table, filters)
        try:
            async with _conn_for(user) as conn:
                await conn.execute(sql, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.warning("pg_gateway: delete %s failed: %s", table, e)
            raise GatewayError("delete", table, str(e)) from e
