"""Caller-facing entry points for sync runs.

Every method returns an envelope ``{"success": bool, "data" | "message", ...}``.
Failures carry ``error`` (the exception's error code) so transports can map
them to their own status codes; fatal chunk failures also carry
``"fatal": True``.
"""

import inspect
from typing import Any, Callable

import redis.asyncio as aioredis
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.config import Settings, get_settings
from catalog_sync.exceptions import CatalogSyncError
from catalog_sync.infrastructure.database.models import SyncType
from catalog_sync.services.batch_scheduler import BatchScheduler, CandidateSource
from catalog_sync.services.catalog_store import SqlCatalogStore
from catalog_sync.services.category_mapping import CategoryMappingService
from catalog_sync.services.reconciliation import ReconciliationPolicy
from catalog_sync.services.run_state import get_run_state_store
from catalog_sync.services.sync_log import SyncLogger

logger = structlog.get_logger()

# Schedules the next chunk of a run: (run_id, log_id, offset)
EnqueueChunk = Callable[[str, int, int], Any]


def _failure(error: CatalogSyncError) -> dict[str, Any]:
    return {"success": False, "message": error.message, "error": error.error_code}


class SyncOrchestrator:
    """Starts, advances, reports and cancels sync runs."""

    def __init__(self, scheduler: BatchScheduler):
        self.scheduler = scheduler

    async def start_sync(self, sync_type: SyncType | str = SyncType.MANUAL) -> dict[str, Any]:
        try:
            started = await self.scheduler.start_run(sync_type)
        except CatalogSyncError as e:
            logger.info("Sync start rejected", reason=e.error_code, message=e.message)
            return _failure(e)

        return {
            "success": True,
            "data": {
                "run_id": started.run_id,
                "log_id": started.log_id,
                "total": started.total,
                "batch_size": started.batch_size,
                "message": started.message,
            },
        }

    async def process_batch(
        self, run_id: str, log_id: int | None = None, offset: int | None = None
    ) -> dict[str, Any]:
        try:
            chunk = await self.scheduler.advance(run_id, log_id, offset)
        except CatalogSyncError as e:
            return _failure(e)

        if chunk.fatal:
            return {"success": False, "fatal": True, "message": chunk.message, "error": "fatal"}
        if chunk.cancelled:
            return {"success": False, "message": chunk.message, "error": "cancelled"}
        return {"success": True, "data": chunk.to_dict()}

    async def get_status(self) -> dict[str, Any]:
        status = await self.scheduler.status()
        return {"success": True, "data": status.to_dict()}

    async def cancel_sync(self, log_id: int | None = None) -> dict[str, Any]:
        cancelled = await self.scheduler.cancel(log_id)
        message = "Sync cancelled." if cancelled else "No sync is running."
        return {"success": True, "data": {"cancelled": cancelled, "message": message}}

    async def log_client_error(
        self, run_id: str | None, log_id: int | None, message: str
    ) -> dict[str, Any]:
        """Mark a run failed after its driver reported a transport failure."""
        failed = await self.scheduler.abort(run_id, log_id, f"Client error: {message}")
        return {"success": True, "data": {"logged": failed}}

    async def run_full_sync(self, sync_type: SyncType | str = SyncType.SCHEDULED) -> dict[str, Any]:
        """Run a whole sync in-process, chunk by chunk."""
        try:
            result = await self.scheduler.run_to_completion(sync_type)
        except CatalogSyncError as e:
            logger.warning("Full sync not started", reason=e.error_code, message=e.message)
            return _failure(e)

        if not result["success"]:
            envelope = {"success": False, "message": result["message"], "data": result}
            if result["fatal"]:
                envelope["fatal"] = True
            return envelope
        return {"success": True, "data": result}

    async def start_background_sync(self, enqueue: EnqueueChunk) -> dict[str, Any]:
        """Start a run and hand its chunks to a background worker."""
        envelope = await self.start_sync(SyncType.BACKGROUND)
        if not envelope["success"]:
            return envelope

        data = envelope["data"]
        try:
            result = enqueue(data["run_id"], data["log_id"], 0)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            await self.scheduler.abort(data["run_id"], data["log_id"], f"Failed to queue sync: {e}")
            raise
        logger.info("Background sync queued", run_id=data["run_id"], log_id=data["log_id"])
        data["message"] = "Background sync started. You can close this page."
        return envelope


def create_orchestrator(
    session: AsyncSession,
    redis_client: aioredis.Redis | None,
    candidate_source: CandidateSource,
    settings: Settings | None = None,
) -> SyncOrchestrator:
    """Wire a SyncOrchestrator over one database session.

    The caller owns ``candidate_source`` (usually a VendorClient) and closes it.
    """
    settings = settings or get_settings()
    scheduler = BatchScheduler(
        candidate_source=candidate_source,
        mapping_source=CategoryMappingService(session),
        policy=ReconciliationPolicy(SqlCatalogStore(session)),
        sync_logger=SyncLogger(session),
        store=get_run_state_store(redis_client, settings.run_state_ttl_seconds),
        batch_size=settings.sync_batch_size,
    )
    return SyncOrchestrator(scheduler)
