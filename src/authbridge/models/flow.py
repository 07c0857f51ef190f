"""Persisted flow records: one per authentication attempt."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FlowStatus(StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class FlowOutcome(StrEnum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class _FlowRecordBase(BaseModel):
    """Fields shared by every flow record.

    Persisted with camelCase keys (``flowId``, ``resumeUrl``, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    flow_id: str
    user_id: str
    resume_url: str
    tenant_hint: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PendingFlowRecord(_FlowRecordBase):
    """A challenge has been issued and the user has not finished it yet."""

    status: Literal["PENDING"] = "PENDING"
    redirect_url: str
    # Poll variant only: handle for reading the challenge status.
    idempotency_key: Optional[str] = None
    action: Optional[str] = None

    def touch(self) -> PendingFlowRecord:
        """Return a copy with a fresh ``updated_at``."""
        return self.model_copy(update={"updated_at": utcnow()})

    def complete(self, outcome: FlowOutcome, failure_reason: str | None = None) -> CompletedFlowRecord:
        """Build the terminal record for this flow."""
        return CompletedFlowRecord(
            flow_id=self.flow_id,
            user_id=self.user_id,
            resume_url=self.resume_url,
            tenant_hint=self.tenant_hint,
            created_at=self.created_at,
            updated_at=utcnow(),
            outcome=outcome,
            failure_reason=failure_reason,
        )


class CompletedFlowRecord(_FlowRecordBase):
    """Terminal record. Never transitions back to pending."""

    status: Literal["COMPLETED"] = "COMPLETED"
    outcome: FlowOutcome
    failure_reason: Optional[str] = None


FlowRecord = Annotated[Union[PendingFlowRecord, CompletedFlowRecord], Field(discriminator="status")]

_flow_record_adapter: TypeAdapter[FlowRecord] = TypeAdapter(FlowRecord)


def parse_flow_record(raw: str | bytes) -> FlowRecord:
    """Decode a persisted JSON record. Raises ``pydantic.ValidationError`` on bad input."""
    return _flow_record_adapter.validate_json(raw)


def dump_flow_record(record: PendingFlowRecord | CompletedFlowRecord) -> str:
    return record.model_dump_json(by_alias=True, exclude_none=True)
