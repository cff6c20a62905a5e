"""Destination catalog access used by the reconciliation policy."""

from typing import Any, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.infrastructure.database.models import CatalogProduct
from catalog_sync.services.images import ImageService

logger = structlog.get_logger()

# Columns a sync is allowed to write
WRITABLE_FIELDS = frozenset(
    {
        "sku",
        "name",
        "regular_price",
        "manage_stock",
        "stock_quantity",
        "stock_status",
        "status",
        "category_ids",
    }
)


class CatalogStore(Protocol):
    """Catalog operations the sync engine depends on."""

    async def find_by_sku(self, sku: str) -> int | None: ...

    async def create_entry(self, fields: dict[str, Any]) -> int: ...

    async def update_entry(self, entry_id: int, fields: dict[str, Any]) -> None: ...

    async def attach_primary_image(self, entry_id: int, source_url: str) -> None: ...


class SqlCatalogStore:
    """CatalogStore over the ``catalog_products`` table.

    Every write commits on its own so items persist in processing order. Any
    failed statement, read or write, is rolled back before re-raising so the
    session stays usable for the next item and for the sync log.
    """

    def __init__(self, session: AsyncSession, image_service: ImageService | None = None):
        self.session = session
        self.image_service = image_service or ImageService(session)

    async def find_by_sku(self, sku: str) -> int | None:
        try:
            result = await self.session.execute(
                select(CatalogProduct.id).where(CatalogProduct.sku == sku)
            )
        except Exception:
            await self.session.rollback()
            raise
        return result.scalar()

    async def create_entry(self, fields: dict[str, Any]) -> int:
        product = CatalogProduct(**self._writable(fields))
        try:
            self.session.add(product)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return product.id

    async def update_entry(self, entry_id: int, fields: dict[str, Any]) -> None:
        values = self._writable(fields)
        try:
            product = await self._get_product(entry_id)
            for name, value in values.items():
                setattr(product, name, value)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def attach_primary_image(self, entry_id: int, source_url: str) -> None:
        try:
            product = await self._get_product(entry_id)
            if product.image_id:
                logger.debug("Product already has a featured image", product_id=entry_id)
                return
            product.image_id = await self.image_service.get_or_download_image(
                source_url, entry_id
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def _get_product(self, entry_id: int) -> CatalogProduct:
        product = await self.session.get(CatalogProduct, entry_id)
        if product is None:
            raise LookupError("Product not found.")
        return product

    @staticmethod
    def _writable(fields: dict[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown catalog fields: {', '.join(sorted(unknown))}")
        return dict(fields)
