"""Sync history API endpoints."""

from math import ceil
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query

from catalog_sync.api.dependencies import get_sync_logger
from catalog_sync.config import Settings, get_settings
from catalog_sync.services.sync_log import SyncLogger, serialize_log
from shared.constants import DEFAULT_LOGS_PER_PAGE, MAX_LOGS_PER_PAGE, STATISTICS_WINDOW_DAYS

router = APIRouter()


@router.get("")
async def list_logs(
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=MAX_LOGS_PER_PAGE)] = DEFAULT_LOGS_PER_PAGE,
    sync_logger: SyncLogger = Depends(get_sync_logger),
) -> dict[str, Any]:
    """Sync logs, newest first."""
    logs = await sync_logger.get_logs(page, per_page)
    total = await sync_logger.count_logs()
    return {
        "logs": [serialize_log(log) for log in logs],
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": ceil(total / per_page) if total else 0,
    }


@router.get("/stats")
async def get_statistics(
    days: Annotated[int, Query(ge=1, le=365)] = STATISTICS_WINDOW_DAYS,
    sync_logger: SyncLogger = Depends(get_sync_logger),
) -> dict[str, Any]:
    """Aggregated counters over the last ``days`` days."""
    return {"days": days, **await sync_logger.get_statistics(days)}


@router.get("/{log_id}")
async def get_log(
    log_id: int,
    sync_logger: SyncLogger = Depends(get_sync_logger),
) -> dict[str, Any]:
    log = await sync_logger.get_log(log_id)
    if log is None:
        raise HTTPException(status_code=404, detail="Log not found")
    return serialize_log(log)


@router.delete("/{log_id}")
async def delete_log(
    log_id: int,
    sync_logger: SyncLogger = Depends(get_sync_logger),
) -> dict[str, Any]:
    if not await sync_logger.delete_log(log_id):
        raise HTTPException(status_code=404, detail="Log not found")
    return {"deleted": 1}


@router.delete("")
async def delete_all_logs(
    sync_logger: SyncLogger = Depends(get_sync_logger),
) -> dict[str, Any]:
    return {"deleted": await sync_logger.delete_all_logs()}


@router.post("/cleanup")
async def cleanup_logs(
    days: Annotated[int | None, Query(ge=1)] = None,
    sync_logger: SyncLogger = Depends(get_sync_logger),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Delete logs older than ``days`` (defaults to the retention setting)."""
    days = days or settings.log_retention_days
    return {"deleted": await sync_logger.cleanup_old_logs(days), "days": days}
