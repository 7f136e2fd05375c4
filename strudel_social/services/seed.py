"""Populate an empty store with the demo patterns."""

from __future__ import annotations

import logging

from strudel_social.models.user import ANONYMOUS
from strudel_social.repos.gateway import Gateway
from strudel_social.services.demo_data import demo_seed_rows

logger = logging.getLogger(__name__)


async def seed_demo_patterns(gateway: Gateway, force: bool = False) -> int:
    """
    Insert the demo dataset (without its demo ids) as ownerless patterns.

    Args:
        gateway: Store to write to
        force: Insert even when patterns already exist

    Returns:
        Number of patterns inserted (0 when the store already had some)
    """
    existing = await gateway.select("patterns")
    if existing and not force:
        logger.info("seed: store already has %d patterns, skipping", len(existing))
        return 0

    rows = await gateway.insert("patterns", demo_seed_rows(), user=ANONYMOUS)
    logger.info("seed: inserted %d demo patterns", len(rows))
    return len(rows)
