"""Resumable, chunked sync runs.

A run moves Idle -> Started -> (Processing <-> ChunkBoundary) and ends
Completed, Failed or Cancelled. Each ``advance`` call processes at most one
chunk and returns; whoever drives the run (HTTP client, Celery tick, CLI loop)
resupplies the run id and cursor for the next chunk.

Two error layers:
- item level: the reconciliation policy turns every per-item failure into an
  ``ItemResult`` error, which is recorded and never stops the chunk;
- chunk level: anything else raised while a chunk runs is fatal, marks the log
  failed, drops the run state and is reported with ``fatal=True``.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from catalog_sync.exceptions import (
    AlreadyRunningError,
    NothingToSyncError,
    SessionExpiredError,
)
from catalog_sync.infrastructure.database.models import SyncLogStatus, SyncType
from catalog_sync.services.candidates import SyncCandidate
from catalog_sync.services.category_mapping import CategoryMappingEntry
from catalog_sync.services.reconciliation import ItemResult, ReconciliationPolicy
from catalog_sync.services.run_state import RunState, RunStateStore, new_run_id
from catalog_sync.services.sync_log import SyncLogger, serialize_log
from shared.constants import DEFAULT_SYNC_BATCH_SIZE, ERROR_CONTEXT_CLIENT

logger = structlog.get_logger()


class CandidateSource(Protocol):
    async def list_sync_candidates(
        self, mapping: dict[str, CategoryMappingEntry]
    ) -> list[SyncCandidate]: ...


class MappingSource(Protocol):
    async def get_mapping(self) -> dict[str, CategoryMappingEntry]: ...


@dataclass
class RunStarted:
    run_id: str
    log_id: int
    total: int
    batch_size: int

    @property
    def message(self) -> str:
        return f"Found {self.total} products to sync."


@dataclass
class ChunkResult:
    """Outcome of one ``advance`` call. Counts are for this chunk only."""

    run_id: str
    log_id: int | None
    processed: int
    total: int
    created: int = 0
    updated: int = 0
    errors: list[str] = field(default_factory=list)
    complete: bool = False
    fatal: bool = False
    cancelled: bool = False
    message: str = ""

    @property
    def success(self) -> bool:
        return not (self.fatal or self.cancelled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "log_id": self.log_id,
            "processed": self.processed,
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "errors": list(self.errors),
            "complete": self.complete,
            "message": self.message,
        }


@dataclass
class RunStatus:
    running: bool
    run_id: str | None = None
    progress: dict[str, int] | None = None
    latest_log: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.running:
            return {"running": True, "run_id": self.run_id, "progress": self.progress or {}}
        return {"running": False, "latest_log": self.latest_log}


class BatchScheduler:
    """Owns run state and advances runs one chunk at a time."""

    def __init__(
        self,
        candidate_source: CandidateSource,
        mapping_source: MappingSource,
        policy: ReconciliationPolicy,
        sync_logger: SyncLogger,
        store: RunStateStore,
        batch_size: int = DEFAULT_SYNC_BATCH_SIZE,
    ):
        self.candidate_source = candidate_source
        self.mapping_source = mapping_source
        self.policy = policy
        self.sync_logger = sync_logger
        self.store = store
        self.batch_size = max(1, batch_size)

    # -------------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------------

    async def start_run(self, sync_type: SyncType | str = SyncType.MANUAL) -> RunStarted:
        """Fetch candidates, create the run state and open its log.

        The running flag is taken before anything else, so a rejected start
        leaves no state and no log row behind.
        """
        sync_type = SyncType(sync_type)
        run_id = new_run_id()
        if not await self.store.acquire_running_flag(run_id):
            raise AlreadyRunningError()

        log_id: int | None = None
        try:
            mapping = await self.mapping_source.get_mapping()
            candidates = await self.candidate_source.list_sync_candidates(mapping)
            if not candidates:
                raise NothingToSyncError()

            log_id = await self.sync_logger.start_log(sync_type)
            state = RunState(
                run_id=run_id,
                log_id=log_id,
                sync_type=sync_type.value,
                candidates=list(candidates),
            )
            await self.store.save(state)
        except Exception as e:
            await self.store.release_running_flag(run_id)
            if log_id is not None:
                await self.sync_logger.mark_failed(str(e))
            raise

        logger.info(
            "Sync run started",
            run_id=run_id,
            log_id=log_id,
            sync_type=sync_type.value,
            total=state.total,
        )
        return RunStarted(run_id=run_id, log_id=log_id, total=state.total, batch_size=self.batch_size)

    # -------------------------------------------------------------------------
    # Advance
    # -------------------------------------------------------------------------

    async def advance(
        self, run_id: str, log_id: int | None = None, cursor: int | None = None
    ) -> ChunkResult:
        """Process the next chunk of ``run_id`` starting at ``cursor``.

        Raises SessionExpiredError when the run state is gone.
        """
        state = await self.store.load(run_id)
        if state is None:
            raise SessionExpiredError()

        if log_id is not None and log_id != state.log_id:
            logger.warning("Log id does not match run", run_id=run_id, log_id=log_id, expected=state.log_id)
        if cursor is None:
            cursor = state.cursor
        cursor = max(0, min(cursor, state.total))

        batch = state.candidates[cursor : cursor + self.batch_size]
        result = ChunkResult(run_id=run_id, log_id=state.log_id, processed=cursor, total=state.total)

        try:
            await self.sync_logger.attach(state.log_id)
            for candidate in batch:
                item = await self.policy.reconcile(candidate)
                await self._record(item, result)
                result.processed += 1
            return await self._finish_chunk(state, result, cursor + len(batch))
        except Exception as e:
            return await self._fail(state, result, e)

    async def _finish_chunk(self, state: RunState, result: ChunkResult, new_cursor: int) -> ChunkResult:
        run_id = state.run_id
        progress = self.sync_logger.current_progress()
        state.cursor = new_cursor
        state.created = progress["created"]
        state.updated = progress["updated"]
        state.errors = progress["errors"]

        if new_cursor >= state.total:
            status = SyncLogStatus.COMPLETED if state.errors == 0 else SyncLogStatus.PARTIAL
            closed = await self.sync_logger.complete_log(status)
            await self._discard(state)
            if not closed:
                # Log was closed by a cancel or abort while the last chunk ran
                result.cancelled = True
                result.message = "Sync was cancelled."
                logger.info("Sync run cancelled during final chunk", run_id=run_id)
                return result
            result.complete = True
            result.message = "Sync completed successfully!"
            logger.info("Sync run completed", run_id=run_id, status=status.value, **progress)
            return result

        if await self.store.get_running_run_id() != run_id:
            # Cancelled while this chunk was running; do not resurrect the state
            await self.store.delete(run_id)
            result.cancelled = True
            result.message = "Sync was cancelled."
            logger.info("Sync run cancelled mid-chunk", run_id=run_id, processed=new_cursor)
            return result

        await self.store.save(state)
        result.message = f"Processed {new_cursor} of {state.total} products..."
        logger.info("Chunk processed", run_id=run_id, processed=new_cursor, total=state.total)
        return result

    async def _record(self, item: ItemResult, result: ChunkResult) -> None:
        if item.error is not None:
            result.errors.append(item.error)
            await self.sync_logger.record_error(item.error, item.sku or None)
            return

        if item.action == "created":
            result.created += 1
            await self.sync_logger.record_created(item.entry_id, item.sku)
        else:
            result.updated += 1
            await self.sync_logger.record_updated(item.entry_id, item.sku)

        for warning in item.warnings:
            result.errors.append(warning.message)
            await self.sync_logger.record_error(warning.message, item.sku, warning.context)

    async def _fail(self, state: RunState, result: ChunkResult, error: Exception) -> ChunkResult:
        logger.exception("Fatal error during sync", run_id=state.run_id, processed=result.processed)
        try:
            await self.sync_logger.rollback()
            await self.sync_logger.mark_failed(str(error))
        except Exception:
            logger.exception("Could not mark sync log failed", run_id=state.run_id, log_id=state.log_id)
        finally:
            await self._discard(state)
        result.fatal = True
        result.message = f"Fatal error during sync: {error}"
        return result

    async def _discard(self, state: RunState) -> None:
        await self.store.delete(state.run_id)
        await self.store.release_running_flag(state.run_id)

    # -------------------------------------------------------------------------
    # Cancel, abort, status
    # -------------------------------------------------------------------------

    async def cancel(self, log_id: int | None = None) -> bool:
        """Cancel the active run. Safe to call when nothing is running."""
        run_id = await self.store.get_running_run_id()
        state = await self.store.load(run_id) if run_id else None

        if run_id:
            await self.store.delete(run_id)
            await self.store.release_running_flag(run_id)

        target_log = state.log_id if state else log_id
        closed = False
        if target_log:
            await self.sync_logger.attach(target_log)
            closed = await self.sync_logger.complete_log(SyncLogStatus.CANCELLED)

        if run_id or closed:
            logger.info("Sync run cancelled", run_id=run_id, log_id=target_log)
        return bool(run_id) or closed

    async def abort(self, run_id: str | None, log_id: int | None, message: str) -> bool:
        """Fail a run from the outside, e.g. when its driver lost the connection."""
        state = await self.store.load(run_id) if run_id else None
        if run_id:
            await self.store.delete(run_id)
            await self.store.release_running_flag(run_id)

        target_log = state.log_id if state else log_id
        if not target_log:
            return False
        await self.sync_logger.attach(target_log)
        await self.sync_logger.record_error(message, context=ERROR_CONTEXT_CLIENT)
        failed = await self.sync_logger.complete_log(SyncLogStatus.FAILED)
        logger.warning("Sync run aborted", run_id=run_id, log_id=target_log, reason=message)
        return failed

    async def status(self) -> RunStatus:
        run_id = await self.store.get_running_run_id()
        if run_id:
            state = await self.store.load(run_id)
            return RunStatus(
                running=True,
                run_id=run_id,
                progress=state.progress() if state else {},
            )

        latest = await self.sync_logger.get_latest_log()
        return RunStatus(running=False, latest_log=serialize_log(latest) if latest else None)

    # -------------------------------------------------------------------------
    # Drive a whole run in-process
    # -------------------------------------------------------------------------

    async def run_to_completion(self, sync_type: SyncType | str = SyncType.SCHEDULED) -> dict[str, Any]:
        """Start a run and advance it until it ends."""
        started = await self.start_run(sync_type)
        cursor = 0
        while True:
            chunk = await self.advance(started.run_id, started.log_id, cursor)
            cursor = chunk.processed
            if chunk.complete or not chunk.success:
                break

        progress = self.sync_logger.current_progress()
        return {
            "success": chunk.success,
            "run_id": started.run_id,
            "log_id": started.log_id,
            "fatal": chunk.fatal,
            "message": chunk.message,
            "results": progress,
        }
