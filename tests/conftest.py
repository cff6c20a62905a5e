"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from catalog_sync.config import Settings, get_settings
from catalog_sync.infrastructure.database.models import SCHEMA, Base
from catalog_sync.infrastructure.vendor import VendorClient
from catalog_sync.main import create_app
from catalog_sync.services.batch_scheduler import BatchScheduler
from catalog_sync.services.category_mapping import CategoryMappingEntry
from catalog_sync.services.reconciliation import ReconciliationPolicy
from catalog_sync.services.run_state import InMemoryRunStateStore
from catalog_sync.services.sync_log import SyncLogger


# =============================================================================
# Fakes
# =============================================================================


class InMemoryCatalogStore:
    """CatalogStore kept in a dict, with optional failure injection."""

    def __init__(self) -> None:
        self.entries: dict[int, dict[str, Any]] = {}
        self.images: dict[int, str] = {}
        self.failing_skus: set[str] = set()
        self.failing_image_urls: set[str] = set()
        self.update_calls = 0
        self._next_id = 1

    async def find_by_sku(self, sku: str) -> int | None:
        for entry_id, fields in self.entries.items():
            if fields["sku"] == sku:
                return entry_id
        return None

    async def create_entry(self, fields: dict[str, Any]) -> int:
        if fields["sku"] in self.failing_skus:
            raise RuntimeError("database is locked")
        entry_id = self._next_id
        self._next_id += 1
        self.entries[entry_id] = dict(fields)
        return entry_id

    async def update_entry(self, entry_id: int, fields: dict[str, Any]) -> None:
        if self.entries[entry_id]["sku"] in self.failing_skus:
            raise RuntimeError("database is locked")
        self.update_calls += 1
        self.entries[entry_id].update(fields)

    async def attach_primary_image(self, entry_id: int, source_url: str) -> None:
        if source_url in self.failing_image_urls:
            raise RuntimeError(f"Failed to download image: {source_url}")
        self.images.setdefault(entry_id, source_url)

    def by_sku(self, sku: str) -> dict[str, Any]:
        return next(fields for fields in self.entries.values() if fields["sku"] == sku)


class StaticMappingSource:
    """MappingSource returning a fixed mapping."""

    def __init__(self, mapping: dict[str, CategoryMappingEntry]):
        self.mapping = mapping

    async def get_mapping(self) -> dict[str, CategoryMappingEntry]:
        return dict(self.mapping)


def vendor_transport(
    inventories: list[dict[str, Any]] | Callable[[], list[dict[str, Any]]],
    token: str = "test-token",
) -> httpx.MockTransport:
    """Mock vendor API answering login and inventory requests."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == VendorClient.LOGIN_PATH:
            return httpx.Response(200, json={"token": token})
        if request.url.path == VendorClient.INVENTORIES_PATH:
            if request.headers.get("Authorization") != f"Bearer {token}":
                return httpx.Response(401, json={"message": "Unauthorized"})
            data = inventories() if callable(inventories) else inventories
            return httpx.Response(200, json=data)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


# =============================================================================
# Settings and application
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        postgres_host="localhost",
        postgres_port=5432,
        postgres_user="test",
        postgres_password="test",
        postgres_db="test_db",
        redis_host="localhost",
        redis_port=6379,
        vendor_api_base_url="https://vendor.test",
        vendor_api_email="sync@example.com",
        vendor_api_password="secret",
        sync_batch_size=2,
    )


@pytest.fixture
def app(test_settings: Settings) -> Any:
    """Create test application."""

    def get_test_settings() -> Settings:
        return test_settings

    app = create_app()
    app.dependency_overrides[get_settings] = get_test_settings
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """In-memory SQLite session with the catalog_sync schema translated away."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        execution_options={"schema_translate_map": {SCHEMA: None}},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


# =============================================================================
# Sync engine
# =============================================================================


@pytest.fixture
def speakers_mapping() -> dict[str, CategoryMappingEntry]:
    return {
        "Speakers": CategoryMappingEntry(enabled=True, destination_category_id=5, item_count=1),
        "Cables": CategoryMappingEntry(enabled=False, destination_category_id=7, item_count=2),
    }


@pytest.fixture
def catalog_store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore()


@pytest.fixture
def run_store() -> InMemoryRunStateStore:
    return InMemoryRunStateStore(ttl_seconds=3600)


@pytest_asyncio.fixture
async def vendor_factory(test_settings: Settings) -> AsyncGenerator[Callable[..., VendorClient], None]:
    """Build VendorClients over a mock transport; all are closed at teardown."""
    clients: list[VendorClient] = []

    def make(inventories: Any) -> VendorClient:
        http_client = httpx.AsyncClient(
            base_url=test_settings.vendor_api_base_url,
            transport=vendor_transport(inventories),
        )
        vendor = VendorClient(test_settings, http_client=http_client)
        clients.append(vendor)
        return vendor

    yield make

    for vendor in clients:
        await vendor.aclose()


@pytest.fixture
def scheduler_factory(
    db_session: AsyncSession,
    catalog_store: InMemoryCatalogStore,
    run_store: InMemoryRunStateStore,
    speakers_mapping: dict[str, CategoryMappingEntry],
    vendor_factory: Callable[..., VendorClient],
) -> Callable[..., BatchScheduler]:
    """Build a BatchScheduler over SQLite logs and in-memory catalog and run state."""

    def make(
        inventories: Any,
        batch_size: int = 2,
        mapping: dict[str, CategoryMappingEntry] | None = None,
        policy: ReconciliationPolicy | None = None,
    ) -> BatchScheduler:
        return BatchScheduler(
            candidate_source=vendor_factory(inventories),
            mapping_source=StaticMappingSource(speakers_mapping if mapping is None else mapping),
            policy=policy or ReconciliationPolicy(catalog_store),
            sync_logger=SyncLogger(db_session),
            store=run_store,
            batch_size=batch_size,
        )

    return make


def speakers_inventory(*items: dict[str, Any]) -> list[dict[str, Any]]:
    """Vendor payload with the given Speakers items and a disabled Cables category."""
    return [
        {"name": "Speakers", "items": list(items)},
        {"name": "Cables", "items": [{"id": "C1", "name": "HDMI", "sellingPrice": 5, "stock": 10}]},
    ]


@pytest.fixture
def inventory_builder() -> Callable[..., list[dict[str, Any]]]:
    return speakers_inventory


@pytest.fixture
def catalog_store_class() -> type[InMemoryCatalogStore]:
    return InMemoryCatalogStore
