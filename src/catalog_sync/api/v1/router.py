"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from catalog_sync.api.v1 import health, logs, mapping, sync

api_router = APIRouter()

api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    sync.router,
    prefix="/sync",
    tags=["Sync"],
)

api_router.include_router(
    logs.router,
    prefix="/logs",
    tags=["Logs"],
)

api_router.include_router(
    mapping.router,
    prefix="/mapping",
    tags=["Category Mapping"],
)
