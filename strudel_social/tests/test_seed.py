"""Tests for seeding the demo patterns."""

from __future__ import annotations

import pytest

from strudel_social.services.seed import seed_demo_patterns

pytestmark = pytest.mark.asyncio(loop_scope="session")


async def test_seeds_empty_store(gateway):
    count = await seed_demo_patterns(gateway)

    assert count == 10
    [(op, table, rows)] = gateway.writes
    assert (op, table) == ("insert", "patterns")
    assert all("id" not in row for row in rows)
    assert all(row.get("user_id") is None for row in rows)
    assert rows[0]["name"] == "Basic Kick Pattern"


async def test_skips_populated_store(seeded_gateway):
    assert await seed_demo_patterns(seeded_gateway) == 0
    assert seeded_gateway.writes == []


async def test_force(seeded_gateway):
    assert await seed_demo_patterns(seeded_gateway, force=True) == 10
    assert len(seeded_gateway.tables["patterns"]) == 12
