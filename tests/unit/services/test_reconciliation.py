"""Unit tests for the reconciliation policy."""

import pytest

from catalog_sync.services.candidates import SyncCandidate
from catalog_sync.services.reconciliation import (
    ReconciliationPolicy,
    stock_fields,
    stock_status_for,
)


def candidate(**overrides) -> SyncCandidate:
    values = {
        "source_id": "SKU1",
        "name": "Model X",
        "price": 99.5,
        "stock_quantity": 3,
        "stock_managed": True,
        "destination_category_id": 5,
    }
    values.update(overrides)
    return SyncCandidate(**values)


class TestStockFields:
    """Stock columns derived from a candidate."""

    def test_stock_status(self) -> None:
        assert stock_status_for(1) == "instock"
        assert stock_status_for(0) == "outofstock"
        assert stock_status_for(-2) == "outofstock"

    def test_managed_with_quantity(self) -> None:
        assert stock_fields(candidate(stock_quantity=0)) == {
            "manage_stock": True,
            "stock_quantity": 0,
            "stock_status": "outofstock",
        }

    def test_unmanaged_stock_leaves_quantity_alone(self) -> None:
        assert stock_fields(candidate(stock_managed=False)) == {"manage_stock": False}

    def test_unknown_quantity(self) -> None:
        assert stock_fields(candidate(stock_quantity=None)) == {"manage_stock": True}


class TestReconciliationPolicy:
    """Create and sync-locked update paths."""

    @pytest.fixture
    def policy(self, catalog_store) -> ReconciliationPolicy:
        return ReconciliationPolicy(catalog_store)

    @pytest.mark.asyncio
    async def test_creates_draft_with_full_data(self, policy, catalog_store) -> None:
        result = await policy.reconcile(candidate())

        assert result.ok
        assert result.action == "created"
        assert catalog_store.entries[result.entry_id] == {
            "sku": "SKU1",
            "name": "Model X",
            "status": "draft",
            "manage_stock": True,
            "stock_quantity": 3,
            "stock_status": "instock",
            "regular_price": 99.5,
            "category_ids": [5],
        }

    @pytest.mark.asyncio
    async def test_create_without_destination_category(self, policy, catalog_store) -> None:
        result = await policy.reconcile(candidate(destination_category_id=0, price=None))

        fields = catalog_store.entries[result.entry_id]
        assert "category_ids" not in fields
        assert "regular_price" not in fields

    @pytest.mark.asyncio
    async def test_update_is_sync_locked(self, policy, catalog_store) -> None:
        created = await policy.reconcile(candidate())
        catalog_store.entries[created.entry_id].update(name="Curated", status="publish", category_ids=[9])

        result = await policy.reconcile(
            candidate(name="Renamed", price=89.0, stock_quantity=0, destination_category_id=6)
        )

        assert result.action == "updated"
        assert result.entry_id == created.entry_id
        fields = catalog_store.entries[created.entry_id]
        assert fields["name"] == "Curated"
        assert fields["status"] == "publish"
        assert fields["category_ids"] == [9]
        assert fields["regular_price"] == 89.0
        assert fields["stock_status"] == "outofstock"

    @pytest.mark.asyncio
    async def test_unchanged_update_still_writes(self, policy, catalog_store) -> None:
        await policy.reconcile(candidate())
        await policy.reconcile(candidate())

        assert catalog_store.update_calls == 1

    @pytest.mark.asyncio
    async def test_missing_sku(self, policy, catalog_store) -> None:
        result = await policy.reconcile(candidate(source_id="  "))

        assert not result.ok
        assert result.error == "Product missing ID/SKU."
        assert catalog_store.entries == {}

    @pytest.mark.asyncio
    async def test_store_failure_becomes_item_error(self, policy, catalog_store) -> None:
        catalog_store.failing_skus.add("SKU1")

        result = await policy.reconcile(candidate())

        assert result.error == "Error processing SKU SKU1: database is locked"

    @pytest.mark.asyncio
    async def test_image_failure_is_a_warning(self, policy, catalog_store) -> None:
        catalog_store.failing_image_urls.add("https://cdn.test/x.jpg")

        result = await policy.reconcile(candidate(image_urls=("https://cdn.test/x.jpg",)))

        assert result.ok
        assert result.action == "created"
        assert len(result.warnings) == 1
        assert result.warnings[0].context == "image_download"

    @pytest.mark.asyncio
    async def test_only_first_image_is_attached(self, policy, catalog_store) -> None:
        result = await policy.reconcile(
            candidate(image_urls=("https://cdn.test/1.jpg", "https://cdn.test/2.jpg"))
        )

        assert catalog_store.images == {result.entry_id: "https://cdn.test/1.jpg"}

    @pytest.mark.asyncio
    async def test_falsy_entry_id_is_an_error(self, catalog_store) -> None:
        class NoIdStore(type(catalog_store)):
            async def create_entry(self, fields):
                return 0

        result = await ReconciliationPolicy(NoIdStore()).reconcile(candidate())

        assert result.error == "Failed to create product."
