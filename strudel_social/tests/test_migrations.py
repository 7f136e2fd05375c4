"""Tests for the row-level security policies created by the initial migration."""

from __future__ import annotations

import importlib.util
from pathlib import Path
from unittest.mock import MagicMock

import pytest

MIGRATION = Path(__file__).resolve().parents[2] / "alembic" / "versions" / "001_initial_schema.py"

TABLES = ("patterns", "pattern_likes", "pattern_comments", "posts", "comments")


@pytest.fixture(scope="module")
def statements() -> list[str]:
    """SQL run by upgrade(), whitespace-normalized."""
    location = importlib.util.spec_from_file_location("initial_schema", MIGRATION)
    module = importlib.util.module_from_spec(location)
    location.loader.exec_module(module)
    module.op = MagicMock()
    module.upgrade()
    return [" ".join(call.args[0].split()) for call in module.op.execute.call_args_list]


def policy(statements: list[str], name: str) -> str:
    return next(sql for sql in statements if sql.startswith(f"CREATE POLICY {name} "))


class TestRowLevelSecurity:
    def test_every_table_forces_rls(self, statements):
        for table in TABLES:
            assert f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY" in statements

    def test_ownerless_patterns_only_without_jwt_claims(self, statements):
        sql = policy(statements, "patterns_insert_own")
        assert (
            "user_id IS NULL AND NULLIF(current_setting('request.jwt.claims', true), '') IS NULL"
        ) in sql
        assert "app_current_user_id() IS NOT NULL AND user_id = app_current_user_id()" in sql

    def test_other_inserts_require_signed_in_owner(self, statements):
        for table in TABLES[1:]:
            sql = policy(statements, f"{table}_insert_own")
            assert "user_id IS NULL" not in sql
            assert "app_current_user_id() IS NOT NULL AND user_id = app_current_user_id()" in sql

    def test_deletes_are_owner_only(self, statements):
        for table in TABLES:
            assert "user_id = app_current_user_id()" in policy(statements, f"{table}_delete_own")
