"""Sync candidates: vendor items paired with their destination category."""

from dataclasses import dataclass, field
from typing import Any


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class SyncCandidate:
    """One vendor item selected for sync."""

    source_id: str
    name: str
    price: float | None
    stock_quantity: int | None
    stock_managed: bool
    destination_category_id: int
    source_category: str = ""
    image_urls: tuple[str, ...] = field(default_factory=tuple)

    @property
    def sku(self) -> str:
        return self.source_id.strip()

    @classmethod
    def from_vendor_item(
        cls,
        item: dict[str, Any],
        destination_category_id: int,
        source_category: str = "",
    ) -> "SyncCandidate":
        """Build a candidate from a raw item of the inventories payload."""
        photos = item.get("photoIds") or []
        if not isinstance(photos, list):
            photos = []
        manage_stock = item.get("manage_stock")
        return cls(
            source_id=str(item.get("id") or "").strip(),
            name=str(item.get("name") or "").strip(),
            price=_to_float(item.get("sellingPrice")),
            stock_quantity=_to_int(item.get("stock")),
            stock_managed=True if manage_stock is None else bool(manage_stock),
            destination_category_id=destination_category_id,
            source_category=source_category,
            image_urls=tuple(str(url) for url in photos if url),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "name": self.name,
            "price": self.price,
            "stock_quantity": self.stock_quantity,
            "stock_managed": self.stock_managed,
            "destination_category_id": self.destination_category_id,
            "source_category": self.source_category,
            "image_urls": list(self.image_urls),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncCandidate":
        return cls(
            source_id=data["source_id"],
            name=data["name"],
            price=data.get("price"),
            stock_quantity=data.get("stock_quantity"),
            stock_managed=data.get("stock_managed", True),
            destination_category_id=data.get("destination_category_id", 0),
            source_category=data.get("source_category", ""),
            image_urls=tuple(data.get("image_urls") or ()),
        )
