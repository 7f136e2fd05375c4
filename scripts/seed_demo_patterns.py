#!/usr/bin/env python3
"""
Seed the store with the demo patterns.

Usage:
    python scripts/seed_demo_patterns.py [--force]

Needs DATABASE_URL: ownerless patterns can only be inserted over a direct
Postgres connection, the REST API refuses them. Does nothing if patterns
already exist, unless --force.
"""

import asyncio
import logging
import sys

from strudel_social import db
from strudel_social.config import settings
from strudel_social.repos import GatewayError
from strudel_social.repos.pg_gateway import PgGateway
from strudel_social.services.seed import seed_demo_patterns


async def main():
    logging.basicConfig(level=settings.LOG_LEVEL)
    force = "--force" in sys.argv[1:]

    if not settings.DATABASE_URL:
        print("Missing DATABASE_URL")
        sys.exit(1)

    await db.init_pool()
    gateway = PgGateway()

    try:
        count = await seed_demo_patterns(gateway, force=force)
    except GatewayError as e:
        print(f"Seed failed: {e}")
        sys.exit(1)
    finally:
        await db.close_pool()

    if count:
        print(f"Inserted {count} demo patterns")
    else:
        print("Store already has patterns, nothing to do (use --force to seed anyway)")


if __name__ == "__main__":
    asyncio.run(main())
