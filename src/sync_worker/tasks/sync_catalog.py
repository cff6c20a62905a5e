"""Catalog sync tasks.

Each task runs its coroutine with ``asyncio.run`` and disposes the database
engine and Redis client afterwards, since pooled connections are bound to the
event loop that opened them.
"""

import asyncio
from typing import Any

import structlog
from celery import shared_task

from catalog_sync.config import get_settings
from catalog_sync.infrastructure.database.connection import dispose_engine, get_db_session
from catalog_sync.infrastructure.database.models import SyncType
from catalog_sync.infrastructure.redis import close_redis, get_redis_client
from catalog_sync.infrastructure.vendor import VendorClient
from catalog_sync.services.orchestrator import create_orchestrator
from catalog_sync.services.sync_log import SyncLogger
from shared.constants import NEXT_BATCH_COUNTDOWN_SECONDS

logger = structlog.get_logger()


async def _run_scheduled_sync() -> dict[str, Any]:
    settings = get_settings()
    try:
        async with get_db_session() as session, VendorClient(settings) as vendor:
            orchestrator = create_orchestrator(session, await get_redis_client(), vendor, settings)
            return await orchestrator.run_full_sync(SyncType.SCHEDULED)
    finally:
        await close_redis()
        await dispose_engine()


async def _process_batch(run_id: str, log_id: int, offset: int) -> dict[str, Any]:
    settings = get_settings()
    try:
        async with get_db_session() as session, VendorClient(settings) as vendor:
            orchestrator = create_orchestrator(session, await get_redis_client(), vendor, settings)
            return await orchestrator.process_batch(run_id, log_id, offset)
    finally:
        await close_redis()
        await dispose_engine()


async def _cleanup_logs(days: int) -> int:
    try:
        async with get_db_session() as session:
            return await SyncLogger(session).cleanup_old_logs(days)
    finally:
        await dispose_engine()


def enqueue_sync_batch(run_id: str, log_id: int, offset: int, countdown: int = 0) -> None:
    """Queue one chunk of a background run."""
    process_sync_batch.apply_async(args=[run_id, log_id, offset], countdown=countdown)


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def run_scheduled_sync(self) -> dict:
    """
    Run a complete catalog sync in this worker.

    Triggered daily by beat. Does nothing unless auto sync is enabled.

    Returns:
        dict: Result envelope with the run's created/updated/error counts
    """
    settings = get_settings()
    if not settings.auto_sync_enabled:
        logger.info("Auto sync disabled, skipping scheduled sync")
        return {"success": False, "skipped": True, "message": "Auto sync is disabled."}

    logger.info("Starting scheduled catalog sync")
    result = asyncio.run(_run_scheduled_sync())

    if result.get("fatal"):
        logger.error("Scheduled catalog sync failed", message=result["message"])
    elif result["success"]:
        logger.info("Scheduled catalog sync finished", **result["data"]["results"])
    else:
        logger.warning("Scheduled catalog sync did not run", message=result["message"])
    return result


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def process_sync_batch(self, run_id: str, log_id: int, offset: int = 0) -> dict:
    """
    Advance a background run by one chunk and queue the next one.

    Args:
        run_id: Run id returned when the run was started
        log_id: Sync log entry of the run
        offset: Number of candidates already processed

    Returns:
        dict: Chunk result envelope
    """
    result = asyncio.run(_process_batch(run_id, log_id, offset))

    if not result["success"]:
        if result.get("fatal"):
            logger.error("Background sync failed", run_id=run_id, message=result["message"])
        else:
            logger.info("Background sync stopped", run_id=run_id, reason=result.get("error"))
        return result

    data = result["data"]
    if data["complete"]:
        logger.info("Background sync completed", run_id=run_id, log_id=log_id)
    else:
        enqueue_sync_batch(run_id, log_id, data["processed"], countdown=NEXT_BATCH_COUNTDOWN_SECONDS)
    return result


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def cleanup_sync_logs(self, days: int | None = None) -> dict:
    """
    Delete sync logs older than the retention window.

    Returns:
        dict: Number of deleted logs
    """
    days = days or get_settings().log_retention_days
    deleted = asyncio.run(_cleanup_logs(days))
    return {"deleted": deleted, "days": days}
