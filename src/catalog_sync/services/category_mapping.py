"""Category mapping: which vendor categories sync, and where they land."""

from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.infrastructure.database.models import CategoryMapping

logger = structlog.get_logger()


def category_key(name: Any) -> str:
    """Normalized vendor category name used as the mapping key."""
    return str(name or "").strip()


class CategoryMappingEntry(BaseModel):
    """Mapping for one vendor category. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    destination_category_id: int = Field(default=0, ge=0)
    item_count: int = Field(default=0, ge=0)


class CategoryMappingService:
    """Reads and writes the persisted category mapping."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_mapping(self) -> dict[str, CategoryMappingEntry]:
        result = await self.session.execute(
            select(CategoryMapping).order_by(CategoryMapping.name)
        )
        return {
            row.name: CategoryMappingEntry(
                enabled=row.enabled,
                destination_category_id=row.destination_category_id,
                item_count=row.item_count,
            )
            for row in result.scalars().all()
        }

    async def save_mapping(self, mapping: Mapping[str, CategoryMappingEntry]) -> None:
        """Replace the stored mapping with ``mapping``."""
        await self.session.execute(delete(CategoryMapping))
        for name, entry in mapping.items():
            name = category_key(name)
            if not name:
                continue
            self.session.add(
                CategoryMapping(
                    name=name,
                    enabled=entry.enabled,
                    destination_category_id=entry.destination_category_id,
                    item_count=entry.item_count,
                )
            )
        await self.session.commit()
        logger.info(
            "Category mapping saved",
            categories=len(mapping),
            enabled=sum(1 for e in mapping.values() if e.enabled),
        )

    async def refresh_from_remote(
        self, categories: list[dict[str, Any]]
    ) -> dict[str, CategoryMappingEntry]:
        """Rebuild the mapping from freshly fetched vendor categories.

        Existing choices (enabled, destination) are kept, item counts are
        refreshed, new categories start disabled and categories that vanished
        from the vendor are dropped.
        """
        existing = await self.get_mapping()
        refreshed: dict[str, CategoryMappingEntry] = {}
        for category in categories:
            name = category_key(category.get("name"))
            if not name:
                continue
            previous = existing.get(name)
            refreshed[name] = CategoryMappingEntry(
                enabled=previous.enabled if previous else False,
                destination_category_id=previous.destination_category_id if previous else 0,
                item_count=int(category.get("item_count") or 0),
            )
        await self.save_mapping(refreshed)
        return refreshed
