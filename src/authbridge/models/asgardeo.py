"""Identity platform (Asgardeo) custom-authentication request and response envelope."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _AsgardeoModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class EventUser(_AsgardeoModel):
    id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    claims: Optional[dict[str, Any]] = None


class AuthEvent(_AsgardeoModel):
    user: Optional[EventUser] = None


class AllowedOperation(_AsgardeoModel):
    op: str


class AuthenticateRequest(_AsgardeoModel):
    """Inbound authenticate call. Unknown keys are kept for tenant-hint lookup."""

    flow_id: str = Field(min_length=1)
    action_type: Optional[str] = None
    request_id: Optional[str] = None
    allowed_operations: Optional[list[AllowedOperation]] = None
    event: Optional[AuthEvent] = None

    def as_data(self) -> dict[str, Any]:
        """Loosely-typed view of the payload using the wire key names."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ActionStatus(StrEnum):
    SUCCESS = "SUCCESS"
    INCOMPLETE = "INCOMPLETE"
    FAILED = "FAILED"
    ERROR = "ERROR"


class ErrorCode(StrEnum):
    INVALID_REQUEST = "INVALID_REQUEST"
    REDIRECT_NOT_ALLOWED = "REDIRECT_NOT_ALLOWED"
    FLOW_LOCKED = "FLOW_LOCKED"
    MISSING_USER = "MISSING_USER"
    AUTHSIGNAL_ERROR = "AUTHSIGNAL_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class Operation(BaseModel):
    op: str
    url: str


class AuthResponse(BaseModel):
    """Response envelope: exactly one of success, incomplete, failed or error."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    status: ActionStatus
    operations: Optional[list[Operation]] = None
    failure_reason: Optional[str] = None
    failure_description: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    error_description: Optional[str] = None

    @classmethod
    def success(cls) -> AuthResponse:
        return cls(status=ActionStatus.SUCCESS)

    @classmethod
    def incomplete(cls, redirect_url: str) -> AuthResponse:
        return cls(status=ActionStatus.INCOMPLETE, operations=[Operation(op="redirect", url=redirect_url)])

    @classmethod
    def failed(cls, reason: str, description: str) -> AuthResponse:
        return cls(status=ActionStatus.FAILED, failure_reason=reason, failure_description=description)

    @classmethod
    def error(cls, code: ErrorCode, description: str) -> AuthResponse:
        return cls(status=ActionStatus.ERROR, error_code=code, error_description=description)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
