"""Sync engine services."""

from catalog_sync.services.batch_scheduler import BatchScheduler
from catalog_sync.services.catalog_store import SqlCatalogStore
from catalog_sync.services.category_mapping import CategoryMappingService
from catalog_sync.services.images import ImageService
from catalog_sync.services.orchestrator import SyncOrchestrator
from catalog_sync.services.reconciliation import ReconciliationPolicy
from catalog_sync.services.sync_log import SyncLogger

__all__ = [
    "BatchScheduler",
    "CategoryMappingService",
    "ImageService",
    "ReconciliationPolicy",
    "SqlCatalogStore",
    "SyncLogger",
    "SyncOrchestrator",
]
