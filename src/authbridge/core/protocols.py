"""Protocol interfaces for all AuthBridge abstractions.

Stores and challenge clients are consumed through these structural types;
tests substitute in-memory fakes without inheritance.
"""

from __future__ import annotations

from typing import Optional, Protocol, Union, runtime_checkable

from authbridge.core.types import JsonDict, LockOwner
from authbridge.models.challenge import ActionResult, TrackResult, ValidateResult
from authbridge.models.flow import CompletedFlowRecord, PendingFlowRecord

AnyFlowRecord = Union[PendingFlowRecord, CompletedFlowRecord]


# ---------------------------------------------------------------------------
# Persistence: Flow Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IFlowStore(Protocol):
    """TTL-bound flow records plus a separate per-flow lock namespace."""

    def get(self, flow_id: str) -> Optional[AnyFlowRecord]: ...

    def save(self, record: AnyFlowRecord) -> None: ...

    def refresh_pending(self, record: PendingFlowRecord) -> bool:
        """Overwrite only while the stored record is still PENDING; False otherwise."""

    def acquire_lock(self, flow_id: str, ttl_ms: int) -> Optional[LockOwner]: ...

    def release_lock(self, flow_id: str, owner: LockOwner) -> None: ...

    def healthcheck(self) -> None: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# External challenge service
# ---------------------------------------------------------------------------

@runtime_checkable
class IChallengeClient(Protocol):
    """Authsignal-compatible challenge service."""

    def track_action(
        self,
        user_id: str,
        action: str,
        redirect_url: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        custom: Optional[JsonDict] = None,
    ) -> TrackResult: ...

    def get_action(self, user_id: str, action: str, idempotency_key: str) -> ActionResult: ...

    def validate_challenge(self, token: str) -> ValidateResult: ...

    def close(self) -> None: ...
