"""Challenge service (Authsignal) response payloads."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _ChallengeModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TrackResult(_ChallengeModel):
    """Result of initiating (tracking) an action."""

    state: str
    idempotency_key: Optional[str] = None
    url: Optional[str] = None
    token: Optional[str] = None


class ActionResult(_ChallengeModel):
    """Current state of a previously tracked action."""

    state: str


class ValidateResult(_ChallengeModel):
    """Result of validating a challenge token handed back on redirect."""

    is_valid: Optional[bool] = None
    state: Optional[str] = None
    action: Optional[str] = None
    user_id: Optional[str] = None
