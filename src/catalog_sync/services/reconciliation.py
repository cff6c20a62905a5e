"""Create/update policy applied to each sync candidate.

New SKUs are created as drafts with full data. Existing SKUs are "sync
locked": only price and stock are written, so local curation of name,
categories, publish status and images is never overwritten by the feed.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from catalog_sync.services.candidates import SyncCandidate
from catalog_sync.services.catalog_store import CatalogStore
from shared.constants import (
    ERROR_CONTEXT_IMAGE,
    PRODUCT_STATUS_DRAFT,
    STOCK_STATUS_IN_STOCK,
    STOCK_STATUS_OUT_OF_STOCK,
)

logger = structlog.get_logger()


@dataclass
class ItemWarning:
    """Non-fatal problem on an otherwise successful item."""

    message: str
    context: str


@dataclass
class ItemResult:
    """Outcome of reconciling one candidate. Exactly one of action/error is set."""

    sku: str
    action: Literal["created", "updated"] | None = None
    entry_id: int | None = None
    error: str | None = None
    warnings: list[ItemWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, sku: str, message: str) -> "ItemResult":
        return cls(sku=sku, error=message)


def stock_status_for(quantity: int) -> str:
    return STOCK_STATUS_IN_STOCK if quantity > 0 else STOCK_STATUS_OUT_OF_STOCK


def stock_fields(candidate: SyncCandidate) -> dict[str, Any]:
    """Stock columns shared by the create and update paths."""
    fields: dict[str, Any] = {"manage_stock": candidate.stock_managed}
    if candidate.stock_managed and candidate.stock_quantity is not None:
        fields["stock_quantity"] = candidate.stock_quantity
        fields["stock_status"] = stock_status_for(candidate.stock_quantity)
    return fields


class ReconciliationPolicy:
    """Decides create vs update for a candidate and applies it to the catalog."""

    def __init__(self, store: CatalogStore):
        self.store = store

    async def reconcile(self, candidate: SyncCandidate) -> ItemResult:
        sku = candidate.sku
        if not sku:
            return ItemResult.failed("", "Product missing ID/SKU.")

        try:
            entry_id = await self.store.find_by_sku(sku)
            if entry_id:
                return await self._update_existing(entry_id, candidate)
            return await self._create_new(candidate)
        except Exception as e:
            logger.warning("Error reconciling product", sku=sku, error=str(e))
            return ItemResult.failed(sku, f"Error processing SKU {sku}: {e}")

    async def _create_new(self, candidate: SyncCandidate) -> ItemResult:
        sku = candidate.sku
        fields: dict[str, Any] = {
            "sku": sku,
            "name": candidate.name,
            "status": PRODUCT_STATUS_DRAFT,
            **stock_fields(candidate),
        }
        if candidate.price is not None:
            fields["regular_price"] = candidate.price
        if candidate.destination_category_id > 0:
            fields["category_ids"] = [candidate.destination_category_id]

        entry_id = await self.store.create_entry(fields)
        if not entry_id:
            return ItemResult.failed(sku, "Failed to create product.")

        result = ItemResult(sku=sku, action="created", entry_id=entry_id)

        if candidate.image_urls:
            try:
                await self.store.attach_primary_image(entry_id, candidate.image_urls[0])
            except Exception as e:
                logger.warning("Image attach failed", sku=sku, error=str(e))
                result.warnings.append(ItemWarning(message=str(e), context=ERROR_CONTEXT_IMAGE))

        logger.debug("Created product", sku=sku, entry_id=entry_id)
        return result

    async def _update_existing(self, entry_id: int, candidate: SyncCandidate) -> ItemResult:
        fields = stock_fields(candidate)
        if candidate.price is not None:
            fields["regular_price"] = candidate.price

        # Written even when nothing changed
        await self.store.update_entry(entry_id, fields)

        logger.debug("Updated product", sku=candidate.sku, entry_id=entry_id)
        return ItemResult(sku=candidate.sku, action="updated", entry_id=entry_id)
