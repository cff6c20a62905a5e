"""Category mapping API endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from catalog_sync.api.dependencies import get_mapping_service, get_vendor_client
from catalog_sync.exceptions import VendorAPIError
from catalog_sync.infrastructure.vendor import VendorClient
from catalog_sync.services.category_mapping import CategoryMappingEntry, CategoryMappingService

logger = structlog.get_logger()

router = APIRouter()


class MappingPayload(BaseModel):
    """Full category mapping, keyed by vendor category name."""

    model_config = ConfigDict(extra="forbid")

    mapping: dict[str, CategoryMappingEntry]


class ConnectionTestRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


def _dump(mapping: dict[str, CategoryMappingEntry]) -> dict[str, Any]:
    return {"mapping": {name: entry.model_dump() for name, entry in mapping.items()}}


@router.get("")
async def get_mapping(
    service: CategoryMappingService = Depends(get_mapping_service),
) -> dict[str, Any]:
    return _dump(await service.get_mapping())


@router.put("")
async def save_mapping(
    payload: MappingPayload,
    service: CategoryMappingService = Depends(get_mapping_service),
) -> dict[str, Any]:
    """Replace the mapping. Entries with unknown fields are rejected with 422."""
    await service.save_mapping(payload.mapping)
    return _dump(payload.mapping)


@router.post("/refresh")
async def refresh_mapping(
    service: CategoryMappingService = Depends(get_mapping_service),
    vendor: VendorClient = Depends(get_vendor_client),
) -> dict[str, Any]:
    """
    Rebuild the mapping from the vendor's current categories.

    Enabled flags and destinations are kept; new categories start disabled.
    """
    try:
        categories = await vendor.get_categories_for_mapping()
    except VendorAPIError as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    return _dump(await service.refresh_from_remote(categories))


@router.post("/test-connection")
async def test_connection(
    request: ConnectionTestRequest,
    vendor: VendorClient = Depends(get_vendor_client),
) -> dict[str, Any]:
    """Check vendor credentials without saving them."""
    try:
        return await vendor.test_connection(request.email, request.password)
    except VendorAPIError as e:
        logger.info("Vendor connection test failed", error=e.message)
        raise HTTPException(status_code=502, detail=e.message) from e
