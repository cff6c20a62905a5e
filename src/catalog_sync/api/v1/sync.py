"""Sync run API endpoints.

A browser-driven run calls ``/start`` once and then ``/batch`` repeatedly,
passing back the ``run_id``, ``log_id`` and ``processed`` offset from the
previous response, until ``complete`` is true.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from catalog_sync.api.dependencies import get_chunk_enqueuer, get_orchestrator
from catalog_sync.infrastructure.database.models import SyncType
from catalog_sync.services.orchestrator import EnqueueChunk, SyncOrchestrator

logger = structlog.get_logger()

router = APIRouter()

# Envelope error codes to HTTP status codes
STATUS_BY_ERROR: dict[str, int] = {
    "nothing_to_sync": status.HTTP_400_BAD_REQUEST,
    "already_running": status.HTTP_409_CONFLICT,
    "cancelled": status.HTTP_409_CONFLICT,
    "session_expired": status.HTTP_410_GONE,
    "vendor_error": status.HTTP_502_BAD_GATEWAY,
    "auth_failed": status.HTTP_502_BAD_GATEWAY,
    "fetch_failed": status.HTTP_502_BAD_GATEWAY,
    "fatal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# =============================================================================
# Request Models
# =============================================================================


class BatchRequest(BaseModel):
    """Advance a run by one chunk."""

    run_id: str = Field(..., min_length=1, description="Run id returned by /sync/start")
    log_id: int | None = Field(None, description="Log id returned by /sync/start")
    offset: int | None = Field(None, ge=0, description="'processed' from the previous response")


class CancelRequest(BaseModel):
    log_id: int | None = None


class ClientErrorRequest(BaseModel):
    """Transport failure reported by the client driving a run."""

    run_id: str | None = None
    log_id: int | None = None
    message: str = Field(..., min_length=1, max_length=2000)


def unwrap(envelope: dict[str, Any]) -> dict[str, Any]:
    """Return a successful envelope or raise it as an HTTP error."""
    if envelope["success"]:
        return envelope
    status_code = STATUS_BY_ERROR.get(envelope.get("error", ""), status.HTTP_400_BAD_REQUEST)
    raise HTTPException(status_code=status_code, detail=envelope)


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/start")
async def start_sync(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """
    Start a manual sync run.

    Fetches the vendor inventory for every enabled category and returns the
    run id, log id and candidate total. Rejected with 409 while another run is
    active and with 400 when no category yields products.
    """
    return unwrap(await orchestrator.start_sync(SyncType.MANUAL))


@router.post("/batch")
async def process_batch(
    request: BatchRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """
    Process the next chunk of a run.

    Returns 410 when the run state has expired or the run already ended; the
    client must start a new run.
    """
    return unwrap(await orchestrator.process_batch(request.run_id, request.log_id, request.offset))


@router.get("/status")
async def get_status(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Live counters of the active run, or the latest log when idle."""
    return await orchestrator.get_status()


@router.post("/cancel")
async def cancel_sync(
    request: CancelRequest | None = None,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Cancel the active run. Succeeds when nothing is running."""
    return await orchestrator.cancel_sync(request.log_id if request else None)


@router.post("/error")
async def log_client_error(
    request: ClientErrorRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Record a client-side failure and close the run as failed."""
    logger.warning("Client reported sync error", run_id=request.run_id, log_id=request.log_id)
    return await orchestrator.log_client_error(request.run_id, request.log_id, request.message)


@router.post("/background")
async def start_background_sync(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    enqueue: EnqueueChunk = Depends(get_chunk_enqueuer),
) -> dict[str, Any]:
    """Start a run driven by the sync worker instead of the client."""
    return unwrap(await orchestrator.start_background_sync(enqueue))
