"""SQLAlchemy models for the catalog sync service.

These models are stored in the 'catalog_sync' schema: the destination
catalog, the category mapping edited by operators, and the sync history.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Schema for all catalog sync tables
SCHEMA = "catalog_sync"


class Base(DeclarativeBase):
    """Base class for all models."""

    __table_args__ = {"schema": SCHEMA}


# =============================================================================
# Enums
# =============================================================================


class SyncType(str, PyEnum):
    """How a sync run was triggered."""

    MANUAL = "manual"
    SCHEDULED = "scheduled"
    BACKGROUND = "background"


class SyncLogStatus(str, PyEnum):
    """Sync run status. Every status except IN_PROGRESS is terminal."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not SyncLogStatus.IN_PROGRESS


# =============================================================================
# Destination Catalog
# =============================================================================


class CatalogProduct(Base):
    """Product in the local commerce catalog.

    ``sku`` carries the vendor item id and is the only key used to decide
    between creating and updating during a sync.
    """

    __tablename__ = "catalog_products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    regular_price: Mapped[Optional[float]] = mapped_column(Float)
    manage_stock: Mapped[bool] = mapped_column(Boolean, default=True)
    stock_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    stock_status: Mapped[str] = mapped_column(String(20), default="instock")
    status: Mapped[str] = mapped_column(String(20), default="draft")
    category_ids: Mapped[list] = mapped_column(JSON, default=list)
    image_id: Mapped[Optional[int]] = mapped_column(Integer)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_catalog_products_status", "status"),
        {"schema": SCHEMA},
    )


class MediaAttachment(Base):
    """Downloaded product image, deduplicated by its vendor source URL."""

    __tablename__ = "media_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey(f"{SCHEMA}.catalog_products.id", ondelete="SET NULL")
    )
    source_url: Mapped[str] = mapped_column(
        String(2048), unique=True, nullable=False, index=True
    )
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = ({"schema": SCHEMA},)


# =============================================================================
# Category Mapping
# =============================================================================


class CategoryMapping(Base):
    """Vendor category to catalog category mapping.

    Only enabled categories contribute sync candidates.
    """

    __tablename__ = "category_mappings"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    destination_category_id: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    item_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = ({"schema": SCHEMA},)


# =============================================================================
# Sync Logs
# =============================================================================


class SyncLog(Base):
    """Audit record for one sync run.

    Counters and ``error_details`` are written after every processed item, so
    an interrupted run still leaves a truthful partial record.
    """

    __tablename__ = "sync_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False, index=True
    )
    sync_type: Mapped[SyncType] = mapped_column(Enum(SyncType), nullable=False)
    products_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    products_updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # [{time, sku?, message, context?}, ...]
    error_details: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[SyncLogStatus] = mapped_column(
        Enum(SyncLogStatus), default=SyncLogStatus.IN_PROGRESS, nullable=False, index=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_sync_logs_status_started", "status", "started_at"),
        {"schema": SCHEMA},
    )
