#!/usr/bin/env python3
"""CLI script to run a full catalog sync from the vendor API."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog

from catalog_sync.config import get_settings
from catalog_sync.infrastructure.database.connection import dispose_engine, get_db_session
from catalog_sync.infrastructure.database.models import SyncType
from catalog_sync.infrastructure.redis import close_redis, get_redis_client
from catalog_sync.infrastructure.vendor import VendorClient
from catalog_sync.services.category_mapping import CategoryMappingService
from catalog_sync.services.orchestrator import create_orchestrator
from shared.constants import MAX_SYNC_BATCH_SIZE, MIN_SYNC_BATCH_SIZE

logger = structlog.get_logger()


async def refresh_mapping() -> None:
    """Pull vendor categories into the mapping before syncing."""
    async with get_db_session() as session, VendorClient() as vendor:
        categories = await vendor.get_categories_for_mapping()
        mapping = await CategoryMappingService(session).refresh_from_remote(categories)
        logger.info(
            "Category mapping refreshed",
            categories=len(mapping),
            enabled=sum(1 for entry in mapping.values() if entry.enabled),
        )


async def main(args: argparse.Namespace) -> int:
    """Main sync function."""
    settings = get_settings()
    if args.batch_size:
        batch_size = max(MIN_SYNC_BATCH_SIZE, min(MAX_SYNC_BATCH_SIZE, args.batch_size))
        settings = settings.model_copy(update={"sync_batch_size": batch_size})

    try:
        if args.refresh_mapping:
            await refresh_mapping()

        logger.info("Starting catalog sync", batch_size=settings.sync_batch_size)
        async with get_db_session() as session, VendorClient(settings) as vendor:
            orchestrator = create_orchestrator(session, await get_redis_client(), vendor, settings)
            result = await orchestrator.run_full_sync(SyncType.MANUAL)
    finally:
        await close_redis()
        await dispose_engine()

    if not result["success"]:
        logger.error("Catalog sync failed", message=result["message"], fatal=result.get("fatal", False))
        return 1

    logger.info("Catalog sync completed", **result["data"]["results"])
    return 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Products per chunk (1-100, defaults to SYNC_BATCH_SIZE)",
    )
    parser.add_argument(
        "--refresh-mapping",
        action="store_true",
        help="Refresh the category mapping from the vendor first",
    )
    return parser.parse_args()


if __name__ == "__main__":
    sys.exit(asyncio.run(main(parse_args())))
