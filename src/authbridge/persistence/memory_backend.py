"""In-process flow store. Single instance only; no cross-process consistency."""

from __future__ import annotations

import threading
import time
import uuid
from typing import Callable, NamedTuple, Optional

from authbridge.core.protocols import AnyFlowRecord
from authbridge.models.flow import FlowStatus, PendingFlowRecord


class _StoredFlow(NamedTuple):
    record: AnyFlowRecord
    expires_at: float


class _StoredLock(NamedTuple):
    owner: str
    expires_at: float


class MemoryFlowStore:
    """Dict-backed IFlowStore with lazy expiry on read."""

    def __init__(self, ttl_seconds: int = 900, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._flows: dict[str, _StoredFlow] = {}
        self._locks: dict[str, _StoredLock] = {}
        self._mutex = threading.Lock()

    def get(self, flow_id: str) -> Optional[AnyFlowRecord]:
        with self._mutex:
            stored = self._flows.get(flow_id)
            if stored is None:
                return None
            if stored.expires_at <= self._clock():
                del self._flows[flow_id]
                return None
            return stored.record

    def save(self, record: AnyFlowRecord) -> None:
        with self._mutex:
            self._flows[record.flow_id] = _StoredFlow(record, self._clock() + self._ttl_seconds)

    def refresh_pending(self, record: PendingFlowRecord) -> bool:
        with self._mutex:
            now = self._clock()
            stored = self._flows.get(record.flow_id)
            if stored is None or stored.expires_at <= now or stored.record.status != FlowStatus.PENDING:
                return False
            self._flows[record.flow_id] = _StoredFlow(record, now + self._ttl_seconds)
            return True

    def acquire_lock(self, flow_id: str, ttl_ms: int) -> Optional[str]:
        with self._mutex:
            now = self._clock()
            existing = self._locks.get(flow_id)
            if existing is not None and existing.expires_at > now:
                return None
            owner = uuid.uuid4().hex
            self._locks[flow_id] = _StoredLock(owner, now + ttl_ms / 1000)
            return owner

    def release_lock(self, flow_id: str, owner: str) -> None:
        with self._mutex:
            existing = self._locks.get(flow_id)
            if existing is not None and existing.owner == owner:
                del self._locks[flow_id]

    def healthcheck(self) -> None:
        return None

    def close(self) -> None:
        with self._mutex:
            self._flows.clear()
            self._locks.clear()
