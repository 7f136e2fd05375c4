"""
Remote data gateway contract.

Everything above the repos talks to storage through this call shape:
select / insert / delete over five known tables, equality filters only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from strudel_social.models.user import ANONYMOUS, SessionUser

# Columns each table exposes. Used to reject unknown identifiers before any
# SQL or query string is built from them.
TABLE_COLUMNS: dict[str, frozenset[str]] = {
    "patterns": frozenset(
        {"id", "created_at", "name", "category", "code", "author", "tags", "description", "user_id"}
    ),
    "pattern_likes": frozenset({"id", "created_at", "pattern_id", "user_id"}),
    "pattern_comments": frozenset({"id", "created_at", "content", "pattern_id", "user_id", "author"}),
    "posts": frozenset({"id", "created_at", "content", "user_id", "author"}),
    "comments": frozenset({"id", "created_at", "content", "post_id", "user_id", "author"}),
}

TABLES = frozenset(TABLE_COLUMNS)

Row = dict[str, Any]
Filters = dict[str, Any]


class GatewayError(Exception):
    """A select/insert/delete failed in transport or was refused by the store."""

    def __init__(self, operation: str, table: str, detail: str, status_code: int | None = None):
        self.operation = operation
        self.table = table
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{operation} {table} failed: {detail}")


@dataclass(frozen=True)
class Order:
    column: str = "created_at"
    descending: bool = False


NEWEST_FIRST = Order("created_at", descending=True)
OLDEST_FIRST = Order("created_at", descending=False)


def check_table(table: str) -> frozenset[str]:
    """Return the table's columns, or raise ValueError for an unknown table."""
    try:
        return TABLE_COLUMNS[table]
    except KeyError:
        raise ValueError(f"Unknown table: {table}") from None


def check_columns(table: str, columns) -> None:
    """Raise ValueError if any column is not part of the table."""
    known = check_table(table)
    unknown = sorted(set(columns) - known)
    if unknown:
        raise ValueError(f"Unknown column(s) for {table}: {', '.join(unknown)}")


class Gateway(Protocol):
    """Storage operations used by the repos."""

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Order | None = None,
        user: SessionUser = ANONYMOUS,
    ) -> list[Row]: ...

    async def insert(self, table: str, rows: list[Row], user: SessionUser = ANONYMOUS) -> list[Row]: ...

    async def delete(self, table: str, filters: Filters, user: SessionUser = ANONYMOUS) -> None: ...
