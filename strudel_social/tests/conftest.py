"""
Pytest configuration and fixtures for strudel_social tests.
"""

from __future__ import annotations

import asyncio
import itertools
import os
from datetime import UTC, datetime, timedelta

import pytest

from strudel_social.config import Settings
from strudel_social.models.user import ANONYMOUS, Authenticated, SessionUser
from strudel_social.repos.gateway import TABLES, Filters, GatewayError, Order, Row, check_columns, check_table

# Tests never talk to a real project
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("SUPABASE_ANON_KEY", None)
os.environ.pop("SUPABASE_JWT_SECRET", None)

BASE_TIME = datetime(2025, 1, 1, tzinfo=UTC)


class FakeGateway:
    """In-memory gateway.

    writes records every insert/delete attempt as (operation, table, payload).
    fail_on holds "operation" or "operation:table" keys that raise GatewayError.
    gate, when set, holds writes until the event is set.
    """

    def __init__(self):
        self.tables: dict[str, list[Row]] = {name: [] for name in TABLES}
        self.writes: list[tuple[str, str, object]] = []
        self.selects: list[tuple[str, Filters | None]] = []
        self.fail_on: set[str] = set()
        self.gate: asyncio.Event | None = None
        self._ids = itertools.count(1)

    def add(self, table: str, **row) -> Row:
        """Store a row directly (no write recorded). Returns the stored row."""
        n = next(self._ids)
        stored = {"id": f"{table}-{n}", "created_at": BASE_TIME + timedelta(minutes=n), **row}
        self.tables[table].append(stored)
        return stored

    def _check_failure(self, operation: str, table: str) -> None:
        if operation in self.fail_on or f"{operation}:{table}" in self.fail_on:
            raise GatewayError(operation, table, "simulated failure", 500)

    @staticmethod
    def _matches(row: Row, filters: Filters | None) -> bool:
        return all(row.get(column) == value for column, value in (filters or {}).items())

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Order | None = None,
        user: SessionUser = ANONYMOUS,
    ) -> list[Row]:
        check_columns(table, filters or {})
        self.selects.append((table, filters))
        self._check_failure("select", table)
        rows = [dict(row) for row in self.tables[table] if self._matches(row, filters)]
        if order is not None:
            rows.sort(key=lambda row: row[order.column], reverse=order.descending)
        return rows

    async def insert(self, table: str, rows: list[Row], user: SessionUser = ANONYMOUS) -> list[Row]:
        check_table(table)
        self.writes.append(("insert", table, rows))
        if self.gate is not None:
            await self.gate.wait()
        self._check_failure("insert", table)
        return [dict(self.add(table, **row)) for row in rows]

    async def delete(self, table: str, filters: Filters, user: SessionUser = ANONYMOUS) -> None:
        check_columns(table, filters)
        self.writes.append(("delete", table, filters))
        if self.gate is not None:
            await self.gate.wait()
        self._check_failure("delete", table)
        self.tables[table] = [row for row in self.tables[table] if not self._matches(row, filters)]


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def alice():
    return Authenticated(id="user-alice", email="alice@example.com", username="alice", access_token="token-alice")


@pytest.fixture
def bob():
    return Authenticated(id="user-bob", email="bob@example.com", access_token="token-bob")


@pytest.fixture
def seeded_gateway(gateway, alice, bob):
    """Two patterns (one each), a like from bob on alice's, one post with a comment."""
    kick = gateway.add(
        "patterns",
        name="Alice Kick",
        category="Drums",
        code='sound("bd*4")',
        author="alice",
        tags=["kick", "house"],
        description="",
        user_id=alice.id,
    )
    gateway.add(
        "patterns",
        name="Bob Bass",
        category="Bass",
        code='note("c2 eb2").s("sawtooth")',
        author="bob",
        tags=["bass"],
        description="Low end",
        user_id=bob.id,
    )
    gateway.add("pattern_likes", pattern_id=kick["id"], user_id=bob.id)
    post = gateway.add("posts", content="first!", user_id=bob.id, author="bob")
    gateway.add("comments", content="welcome", post_id=post["id"], user_id=alice.id, author="alice")
    gateway.writes.clear()
    return gateway


@pytest.fixture
def configured(monkeypatch):
    """Settings pointing at a fake hosted project."""
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co/")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    monkeypatch.delenv("SUPABASE_JWT_SECRET", raising=False)
    return Settings()
