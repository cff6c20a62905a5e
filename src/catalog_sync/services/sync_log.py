"""Sync history: per-run counters and error details.

Counters are persisted after every recorded outcome and only while the row is
still ``in_progress``, so a terminal log is never reopened and a crash between
two items leaves an accurate partial record. A logger can re-attach to an
existing row, which is how chunk invocations in different processes keep
appending to the same entry.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.infrastructure.database.models import SyncLog, SyncLogStatus, SyncType
from shared.constants import (
    DEFAULT_LOGS_PER_PAGE,
    ERROR_CONTEXT_FATAL,
    LOG_RETENTION_DAYS,
    STATISTICS_WINDOW_DAYS,
)

logger = structlog.get_logger()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def serialize_log(log: SyncLog) -> dict[str, Any]:
    return {
        "id": log.id,
        "started_at": log.started_at.isoformat() if log.started_at else None,
        "completed_at": log.completed_at.isoformat() if log.completed_at else None,
        "sync_type": SyncType(log.sync_type).value,
        "products_created": log.products_created,
        "products_updated": log.products_updated,
        "errors_count": log.errors_count,
        "error_details": list(log.error_details or []),
        "status": SyncLogStatus(log.status).value,
    }


class SyncLogger:
    """Writes one run's log entry and queries the sync history."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._log_id: int | None = None
        self._created = 0
        self._updated = 0
        self._errors: list[dict[str, Any]] = []

    @property
    def log_id(self) -> int | None:
        return self._log_id

    # -------------------------------------------------------------------------
    # Writing a run
    # -------------------------------------------------------------------------

    async def start_log(self, sync_type: SyncType | str = SyncType.MANUAL) -> int:
        log = SyncLog(
            started_at=utcnow(),
            sync_type=SyncType(sync_type),
            products_created=0,
            products_updated=0,
            errors_count=0,
            error_details=[],
            status=SyncLogStatus.IN_PROGRESS,
        )
        self.session.add(log)
        await self.session.commit()

        self._log_id = log.id
        self._created = 0
        self._updated = 0
        self._errors = []
        logger.info("Sync log started", log_id=log.id, sync_type=log.sync_type.value)
        return log.id

    async def attach(self, log_id: int) -> bool:
        """Point this logger at an existing entry and reload its counters."""
        self._log_id = log_id
        log = await self.session.get(SyncLog, log_id, populate_existing=True)
        if log is None:
            self._created = self._updated = 0
            self._errors = []
            return False

        self._created = log.products_created or 0
        self._updated = log.products_updated or 0
        self._errors = list(log.error_details or [])
        return True

    async def record_created(self, entry_id: int | None = None, sku: str | None = None) -> None:
        self._created += 1
        await self._persist()

    async def record_updated(self, entry_id: int | None = None, sku: str | None = None) -> None:
        self._updated += 1
        await self._persist()

    async def record_error(
        self,
        message: str,
        sku: str | None = None,
        context: str | None = None,
    ) -> None:
        error: dict[str, Any] = {"time": utcnow().isoformat(), "message": message}
        if sku:
            error["sku"] = sku
        if context:
            error["context"] = context
        self._errors.append(error)
        await self._persist()

    async def complete_log(self, status: SyncLogStatus | str = SyncLogStatus.COMPLETED) -> bool:
        """Finalize the entry. Returns False if it was already closed."""
        if not self._log_id:
            return False

        status = SyncLogStatus(status)
        result = await self.session.execute(
            update(SyncLog)
            .where(SyncLog.id == self._log_id, SyncLog.status == SyncLogStatus.IN_PROGRESS)
            .values(**self._counter_values(), status=status, completed_at=utcnow())
        )
        await self.session.commit()

        closed = result.rowcount > 0
        if closed:
            logger.info("Sync log completed", log_id=self._log_id, status=status.value, **self.current_progress())
        else:
            logger.debug("Sync log already closed", log_id=self._log_id)
        self._log_id = None
        return closed

    async def mark_failed(self, message: str) -> bool:
        """Record a fatal error and close the entry as failed."""
        await self.record_error(message, context=ERROR_CONTEXT_FATAL)
        return await self.complete_log(SyncLogStatus.FAILED)

    async def rollback(self) -> None:
        """Discard a failed transaction so the session can write again."""
        await self.session.rollback()

    def current_progress(self) -> dict[str, int]:
        return {
            "created": self._created,
            "updated": self._updated,
            "errors": len(self._errors),
        }

    def _counter_values(self) -> dict[str, Any]:
        return {
            "products_created": self._created,
            "products_updated": self._updated,
            "errors_count": len(self._errors),
            "error_details": list(self._errors),
        }

    async def _persist(self) -> None:
        if not self._log_id:
            return
        await self.session.execute(
            update(SyncLog)
            .where(SyncLog.id == self._log_id, SyncLog.status == SyncLogStatus.IN_PROGRESS)
            .values(**self._counter_values())
        )
        await self.session.commit()

    # -------------------------------------------------------------------------
    # History queries
    # -------------------------------------------------------------------------

    async def get_logs(self, page: int = 1, per_page: int = DEFAULT_LOGS_PER_PAGE) -> list[SyncLog]:
        page = max(1, page)
        result = await self.session.execute(
            select(SyncLog)
            .order_by(SyncLog.started_at.desc(), SyncLog.id.desc())
            .limit(per_page)
            .offset((page - 1) * per_page)
        )
        return list(result.scalars().all())

    async def count_logs(self) -> int:
        result = await self.session.execute(select(func.count(SyncLog.id)))
        return result.scalar() or 0

    async def get_log(self, log_id: int) -> SyncLog | None:
        return await self.session.get(SyncLog, log_id, populate_existing=True)

    async def get_latest_log(self) -> SyncLog | None:
        result = await self.session.execute(
            select(SyncLog).order_by(SyncLog.started_at.desc(), SyncLog.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_statistics(self, days: int = STATISTICS_WINDOW_DAYS) -> dict[str, int]:
        cutoff = utcnow() - timedelta(days=days)
        result = await self.session.execute(
            select(
                func.count(SyncLog.id).label("total_syncs"),
                func.coalesce(func.sum(SyncLog.products_created), 0).label("total_created"),
                func.coalesce(func.sum(SyncLog.products_updated), 0).label("total_updated"),
                func.coalesce(func.sum(SyncLog.errors_count), 0).label("total_errors"),
                func.coalesce(
                    func.sum(case((SyncLog.status == SyncLogStatus.COMPLETED, 1), else_=0)), 0
                ).label("successful_syncs"),
                func.coalesce(
                    func.sum(case((SyncLog.status == SyncLogStatus.FAILED, 1), else_=0)), 0
                ).label("failed_syncs"),
            ).where(SyncLog.started_at >= cutoff)
        )
        row = result.one()
        return {
            "total_syncs": int(row.total_syncs),
            "total_created": int(row.total_created),
            "total_updated": int(row.total_updated),
            "total_errors": int(row.total_errors),
            "successful_syncs": int(row.successful_syncs),
            "failed_syncs": int(row.failed_syncs),
        }

    async def delete_log(self, log_id: int) -> bool:
        result = await self.session.execute(delete(SyncLog).where(SyncLog.id == log_id))
        await self.session.commit()
        return result.rowcount > 0

    async def delete_all_logs(self) -> int:
        result = await self.session.execute(delete(SyncLog))
        await self.session.commit()
        return result.rowcount

    async def cleanup_old_logs(self, days: int = LOG_RETENTION_DAYS) -> int:
        cutoff = utcnow() - timedelta(days=days)
        result = await self.session.execute(delete(SyncLog).where(SyncLog.started_at < cutoff))
        await self.session.commit()
        logger.info("Old sync logs removed", days=days, deleted=result.rowcount)
        return result.rowcount
