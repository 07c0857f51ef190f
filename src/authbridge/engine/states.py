"""Classification of vendor state strings into canonical buckets."""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from authbridge.models.flow import FlowOutcome

SUCCESS_STATES = frozenset({"ALLOW", "CHALLENGE_SUCCEEDED", "REVIEW_SUCCEEDED"})
FAILED_STATES = frozenset({"BLOCK", "CHALLENGE_FAILED", "REVIEW_FAILED"})
PENDING_STATES = frozenset({"CHALLENGE_REQUIRED", "REVIEW_REQUIRED"})


class StateKind(StrEnum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"
    UNKNOWN = "UNKNOWN"


def classify_state(state: Optional[str]) -> StateKind:
    """Map a vendor state (case-insensitive) onto a StateKind.

    Unrecognised or missing states are UNKNOWN, never an error.
    """
    if not state:
        return StateKind.UNKNOWN
    normalized = state.strip().upper()
    if normalized in SUCCESS_STATES:
        return StateKind.SUCCESS
    if normalized in FAILED_STATES:
        return StateKind.FAILED
    if normalized in PENDING_STATES:
        return StateKind.PENDING
    return StateKind.UNKNOWN


def failure_reason(state: str) -> str:
    return f"authsignal_{state.strip().lower()}"


def classify_validation(state: Optional[str], is_valid: Optional[bool]) -> tuple[FlowOutcome, Optional[str]]:
    """Map a token validation result to an outcome and failure reason."""
    kind = classify_state(state)
    if is_valid is True or kind is StateKind.SUCCESS:
        return FlowOutcome.SUCCESS, None
    if kind is StateKind.FAILED:
        return FlowOutcome.FAILED, failure_reason(state)
    return FlowOutcome.FAILED, "authsignal_validation_failed"
