"""Unit tests for the sync worker tasks."""

import pytest

from sync_worker.tasks import sync_catalog


@pytest.fixture
def queued(monkeypatch) -> list[tuple]:
    calls: list[tuple] = []

    def fake_enqueue(run_id, log_id, offset, countdown=0):
        calls.append((run_id, log_id, offset, countdown))

    monkeypatch.setattr(sync_catalog, "enqueue_sync_batch", fake_enqueue)
    return calls


def chunk_envelope(processed: int, complete: bool) -> dict:
    return {"success": True, "data": {"processed": processed, "total": 5, "complete": complete}}


def test_process_sync_batch_requeues_until_complete(monkeypatch, queued) -> None:
    async def fake_process(run_id, log_id, offset):
        return chunk_envelope(offset + 2, complete=False)

    monkeypatch.setattr(sync_catalog, "_process_batch", fake_process)

    sync_catalog.process_sync_batch("sync_abc", 3, 0)

    assert queued == [("sync_abc", 3, 2, 1)]


def test_process_sync_batch_stops_when_complete(monkeypatch, queued) -> None:
    async def fake_process(run_id, log_id, offset):
        return chunk_envelope(5, complete=True)

    monkeypatch.setattr(sync_catalog, "_process_batch", fake_process)

    result = sync_catalog.process_sync_batch("sync_abc", 3, 4)

    assert result["data"]["complete"] is True
    assert queued == []


def test_process_sync_batch_stops_on_expired_session(monkeypatch, queued) -> None:
    async def fake_process(run_id, log_id, offset):
        return {"success": False, "message": "expired", "error": "session_expired"}

    monkeypatch.setattr(sync_catalog, "_process_batch", fake_process)

    result = sync_catalog.process_sync_batch("sync_abc", 3, 2)

    assert result["success"] is False
    assert queued == []


def test_scheduled_sync_skipped_when_disabled(monkeypatch, test_settings) -> None:
    monkeypatch.setattr(sync_catalog, "get_settings", lambda: test_settings)

    result = sync_catalog.run_scheduled_sync()

    assert result["skipped"] is True


def test_scheduled_sync_runs_when_enabled(monkeypatch, test_settings) -> None:
    settings = test_settings.model_copy(update={"auto_sync_enabled": True})
    monkeypatch.setattr(sync_catalog, "get_settings", lambda: settings)

    async def fake_run():
        return {"success": True, "data": {"results": {"created": 1, "updated": 0, "errors": 0}}}

    monkeypatch.setattr(sync_catalog, "_run_scheduled_sync", fake_run)

    assert sync_catalog.run_scheduled_sync()["success"] is True
