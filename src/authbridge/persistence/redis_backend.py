"""Redis flow store implementing IFlowStore for multi-instance deployments."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

import redis

from authbridge.core.exceptions import StoreError
from authbridge.core.protocols import AnyFlowRecord
from authbridge.models.flow import FlowStatus, PendingFlowRecord, dump_flow_record, parse_flow_record

logger = logging.getLogger(__name__)

# Compare-and-delete: only the owner that set the lock may remove it.
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
  return redis.call("del", KEYS[1])
else
  return 0
end
"""


class RedisFlowStore:
    """Production IFlowStore backed by Redis native TTL and SET NX."""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl_seconds: int = 900,
        key_prefix: str = "asgardeo-authsignal-adapter",
        client: Optional[redis.Redis] = None,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._key_prefix = key_prefix
        self._client = client if client is not None else redis.Redis.from_url(url, decode_responses=True)
        self._release_script = self._client.register_script(RELEASE_LOCK_SCRIPT)
        self._closed = False

    def _flow_key(self, flow_id: str) -> str:
        return f"{self._key_prefix}:flow:{flow_id}"

    def _lock_key(self, flow_id: str) -> str:
        return f"{self._key_prefix}:flow-lock:{flow_id}"

    def get(self, flow_id: str) -> Optional[AnyFlowRecord]:
        try:
            payload = self._client.get(self._flow_key(flow_id))
        except redis.RedisError as exc:
            raise StoreError(f"Redis GET failed for flow_id={flow_id!r}: {exc}") from exc
        if not payload:
            return None
        try:
            return parse_flow_record(payload)
        except ValueError:
            logger.warning("Discarding undecodable flow record for flow_id=%s", flow_id)
            return None

    def save(self, record: AnyFlowRecord) -> None:
        try:
            self._client.set(self._flow_key(record.flow_id), dump_flow_record(record), ex=self._ttl_seconds)
        except redis.RedisError as exc:
            raise StoreError(f"Redis SET failed for flow_id={record.flow_id!r}: {exc}") from exc

    def refresh_pending(self, record: PendingFlowRecord) -> bool:
        key = self._flow_key(record.flow_id)
        try:
            with self._client.pipeline() as pipe:
                pipe.watch(key)
                current = pipe.get(key)
                if not current or not self._is_pending(current):
                    return False
                pipe.multi()
                pipe.set(key, dump_flow_record(record), ex=self._ttl_seconds)
                pipe.execute()
                return True
        except redis.WatchError:
            # A concurrent write won; it is either a refresh or a terminal outcome.
            return False
        except redis.RedisError as exc:
            raise StoreError(f"Redis refresh failed for flow_id={record.flow_id!r}: {exc}") from exc

    @staticmethod
    def _is_pending(payload: str) -> bool:
        try:
            return parse_flow_record(payload).status == FlowStatus.PENDING
        except ValueError:
            return False

    def acquire_lock(self, flow_id: str, ttl_ms: int) -> Optional[str]:
        owner = uuid.uuid4().hex
        try:
            acquired = self._client.set(self._lock_key(flow_id), owner, px=ttl_ms, nx=True)
        except redis.RedisError as exc:
            raise StoreError(f"Redis lock acquire failed for flow_id={flow_id!r}: {exc}") from exc
        return owner if acquired else None

    def release_lock(self, flow_id: str, owner: str) -> None:
        try:
            self._release_script(keys=[self._lock_key(flow_id)], args=[owner])
        except redis.RedisError as exc:
            raise StoreError(f"Redis lock release failed for flow_id={flow_id!r}: {exc}") from exc

    def healthcheck(self) -> None:
        try:
            self._client.ping()
        except redis.RedisError as exc:
            raise StoreError(f"Redis PING failed: {exc}") from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._client.close()
