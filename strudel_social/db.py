"""
Database connection pool and RLS-scoped connection managers.

Only used by the direct-Postgres gateway. All access goes through
user_conn() or system_conn(). Never use pool.acquire() directly outside
this module.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import asyncpg

from strudel_social import config

pool: asyncpg.Pool | None = None


async def init_pool(dsn: str | None = None) -> None:
    """
    Initialize the connection pool.
    Called once before the Postgres gateway is used.
    """
    global pool
    pool = await asyncpg.create_pool(
        dsn=dsn or config.settings.DATABASE_URL,
        min_size=1,
        max_size=10,
        command_timeout=60,
        init=_init_connection,
    )


async def close_pool() -> None:
    """
    Close the connection pool.
    Called at shutdown.
    """
    global pool
    if pool is not None:
        await pool.close()
        pool = None


async def _init_connection(conn: asyncpg.Connection) -> None:
    """
    Initialize each new connection.

    UUIDs come back as plain strings so rows look the same as the ones the
    REST gateway returns.
    """
    await conn.set_type_codec(
        "uuid",
        encoder=str,
        decoder=str,
        schema="pg_catalog",
    )


@asynccontextmanager
async def user_conn(user_id: str):
    """
    Acquire a database connection scoped to a specific user via RLS.

    Insert and delete policies compare user_id with
    current_setting('app.user_id'), so writes through this connection can
    only touch rows the user owns.

    Usage:
        async with user_conn(user_id) as conn:
            await conn.execute("DELETE FROM posts WHERE id = $1", post_id)

    Args:
        user_id: id of the signed-in user

    Yields:
        asyncpg.Connection with RLS context set
    """
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")

    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(
                "SELECT set_config('app.user_id', $1, true)",
                str(user_id),
            )
            yield conn


@asynccontextmanager
async def system_conn():
    """
    Acquire a database connection without user scoping.

    For anonymous reads (all tables are publicly readable) and seeding.
    RLS refuses writes through this connection except ownerless patterns.

    Yields:
        asyncpg.Connection without RLS scoping
    """
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")

    async with pool.acquire() as conn:
        async with conn.transaction():
            # LOCAL (true) so the empty setting is dropped with the transaction.
            await conn.execute("SELECT set_config('app.user_id', '', true)")
            yield conn
