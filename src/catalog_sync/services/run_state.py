"""Resumable run state and the keyed TTL store that holds it.

A run's working set lives outside any single process so that each chunk can
be advanced by an independent invocation (HTTP request, Celery tick). Reads
after expiry or deletion both return None.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol

import orjson
import redis.asyncio as aioredis
import structlog

from catalog_sync.services.candidates import SyncCandidate
from shared.constants import RUN_STATE_KEY_TEMPLATE, RUN_STATE_TTL_SECONDS, RUNNING_FLAG_KEY

logger = structlog.get_logger()


def new_run_id() -> str:
    return f"sync_{uuid.uuid4().hex}"


@dataclass
class RunState:
    """Working set of one in-flight run."""

    run_id: str
    log_id: int
    sync_type: str
    candidates: list[SyncCandidate]
    cursor: int = 0
    created: int = 0
    updated: int = 0
    errors: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime | None = None

    @property
    def total(self) -> int:
        return len(self.candidates)

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.cursor)

    def progress(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "errors": self.errors,
            "processed": self.cursor,
            "total": self.total,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "log_id": self.log_id,
            "sync_type": self.sync_type,
            "candidates": [c.to_dict() for c in self.candidates],
            "cursor": self.cursor,
            "created": self.created,
            "updated": self.updated,
            "errors": self.errors,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunState":
        expires_at = data.get("expires_at")
        return cls(
            run_id=data["run_id"],
            log_id=data["log_id"],
            sync_type=data["sync_type"],
            candidates=[SyncCandidate.from_dict(c) for c in data["candidates"]],
            cursor=data.get("cursor", 0),
            created=data.get("created", 0),
            updated=data.get("updated", 0),
            errors=data.get("errors", 0),
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        )


class RunStateStore(Protocol):
    """Keyed TTL store for run state plus the global running flag."""

    ttl_seconds: int

    async def save(self, state: RunState) -> None: ...

    async def load(self, run_id: str) -> RunState | None: ...

    async def delete(self, run_id: str) -> None: ...

    async def acquire_running_flag(self, run_id: str) -> bool: ...

    async def get_running_run_id(self) -> str | None: ...

    async def release_running_flag(self, run_id: str | None = None) -> None: ...


def _stamp_expiry(state: RunState, ttl_seconds: int) -> None:
    if state.expires_at is None:
        state.expires_at = state.created_at + timedelta(seconds=ttl_seconds)


# =============================================================================
# Redis
# =============================================================================

# Delete the flag only if it still belongs to the given run
_RELEASE_FLAG_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class RedisRunStateStore:
    """Run state in Redis. The running flag is taken with ``SET NX EX``."""

    def __init__(self, client: aioredis.Redis, ttl_seconds: int = RUN_STATE_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(run_id: str) -> str:
        return RUN_STATE_KEY_TEMPLATE.format(run_id=run_id)

    async def save(self, state: RunState) -> None:
        _stamp_expiry(state, self.ttl_seconds)
        remaining = (state.expires_at - datetime.now(timezone.utc)).total_seconds()
        if remaining <= 0:
            await self.delete(state.run_id)
            return
        await self.client.set(
            self._key(state.run_id),
            orjson.dumps(state.to_dict()),
            ex=max(1, int(remaining)),
        )

    async def load(self, run_id: str) -> RunState | None:
        data = await self.client.get(self._key(run_id))
        if not data:
            return None
        return RunState.from_dict(orjson.loads(data))

    async def delete(self, run_id: str) -> None:
        await self.client.delete(self._key(run_id))

    async def acquire_running_flag(self, run_id: str) -> bool:
        acquired = await self.client.set(
            RUNNING_FLAG_KEY, run_id.encode(), nx=True, ex=self.ttl_seconds
        )
        return bool(acquired)

    async def get_running_run_id(self) -> str | None:
        value = await self.client.get(RUNNING_FLAG_KEY)
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else str(value)

    async def release_running_flag(self, run_id: str | None = None) -> None:
        if run_id is None:
            await self.client.delete(RUNNING_FLAG_KEY)
            return
        await self.client.eval(_RELEASE_FLAG_SCRIPT, 1, RUNNING_FLAG_KEY, run_id.encode())


# =============================================================================
# In-process
# =============================================================================


class InMemoryRunStateStore:
    """Process-local run state for single-process deployments and tests.

    Entries are stored serialized, so mutating a loaded RunState never
    changes what the next load returns.
    """

    def __init__(
        self,
        ttl_seconds: int = RUN_STATE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._states: dict[str, tuple[bytes, float]] = {}
        self._flag: tuple[str, float] | None = None

    async def save(self, state: RunState) -> None:
        _stamp_expiry(state, self.ttl_seconds)
        entry = self._states.get(state.run_id)
        deadline = entry[1] if entry else self._clock() + self.ttl_seconds
        self._states[state.run_id] = (orjson.dumps(state.to_dict()), deadline)

    async def load(self, run_id: str) -> RunState | None:
        entry = self._states.get(run_id)
        if entry is None:
            return None
        payload, deadline = entry
        if self._clock() >= deadline:
            self._states.pop(run_id, None)
            return None
        return RunState.from_dict(orjson.loads(payload))

    async def delete(self, run_id: str) -> None:
        self._states.pop(run_id, None)

    async def acquire_running_flag(self, run_id: str) -> bool:
        # get_running_run_id never suspends, so check-and-set is atomic on the loop
        if await self.get_running_run_id() is not None:
            return False
        self._flag = (run_id, self._clock() + self.ttl_seconds)
        return True

    async def get_running_run_id(self) -> str | None:
        if self._flag is None:
            return None
        run_id, deadline = self._flag
        if self._clock() >= deadline:
            self._flag = None
            return None
        return run_id

    async def release_running_flag(self, run_id: str | None = None) -> None:
        if self._flag is None:
            return
        if run_id is None or self._flag[0] == run_id:
            self._flag = None


_local_store: InMemoryRunStateStore | None = None


def get_run_state_store(
    client: aioredis.Redis | None, ttl_seconds: int = RUN_STATE_TTL_SECONDS
) -> RunStateStore:
    """Redis-backed store when Redis is reachable, else the process-local one."""
    global _local_store
    if client is not None:
        return RedisRunStateStore(client, ttl_seconds)
    if _local_store is None:
        _local_store = InMemoryRunStateStore(ttl_seconds)
        logger.warning("Run state is process-local; resuming from another process is not possible")
    return _local_store
