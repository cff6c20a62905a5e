"""FastAPI dependencies shared by the v1 routers."""

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.config import Settings, get_settings
from catalog_sync.infrastructure.database.connection import get_session
from catalog_sync.infrastructure.redis import get_redis_client
from catalog_sync.infrastructure.vendor import VendorClient
from catalog_sync.services.category_mapping import CategoryMappingService
from catalog_sync.services.orchestrator import EnqueueChunk, SyncOrchestrator, create_orchestrator
from catalog_sync.services.sync_log import SyncLogger


async def get_vendor_client(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[VendorClient, None]:
    """Vendor API client, closed after the request."""
    async with VendorClient(settings) as client:
        yield client


async def get_orchestrator(
    session: AsyncSession = Depends(get_session),
    vendor: VendorClient = Depends(get_vendor_client),
    settings: Settings = Depends(get_settings),
) -> SyncOrchestrator:
    redis_client = await get_redis_client()
    return create_orchestrator(session, redis_client, vendor, settings)


def get_sync_logger(session: AsyncSession = Depends(get_session)) -> SyncLogger:
    return SyncLogger(session)


def get_mapping_service(session: AsyncSession = Depends(get_session)) -> CategoryMappingService:
    return CategoryMappingService(session)


def get_chunk_enqueuer() -> EnqueueChunk:
    """Queue the first chunk of a background run on the sync worker."""
    # Importing the worker app makes it the current Celery app for apply_async
    import sync_worker.main  # noqa: F401
    from sync_worker.tasks.sync_catalog import enqueue_sync_batch

    return enqueue_sync_batch
