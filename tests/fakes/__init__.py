"""Shared test doubles: scripted challenge client, failing store and settings factory."""

from __future__ import annotations

import threading
import time
from typing import Any, Optional, Union

from authbridge.core.config import AppSettings, AsgardeoConfig, AuthsignalConfig
from authbridge.models.challenge import ActionResult, TrackResult, ValidateResult
from authbridge.persistence.memory_backend import MemoryFlowStore

Scripted = Union[TrackResult, ActionResult, ValidateResult, Exception]

RESUME_TEMPLATE = "https://asgardeo.example.com/logincontext?flowId={flowId}"
SECRET = "test-secret"


def make_settings(**overrides: Any) -> AppSettings:
    """Test settings with a static secret and a fixed resume template."""
    values: dict[str, Any] = {
        "environment": "test",
        "public_base_url": "https://adapter.example.com",
        "authsignal": AuthsignalConfig(secret=SECRET),
        "asgardeo": AsgardeoConfig(resume_url_template=RESUME_TEMPLATE),
    }
    values.update(overrides)
    return AppSettings(**values)


class FakeChallengeClient:
    """IChallengeClient returning canned results and recording every call.

    ``action_results`` is consumed in order; the last entry repeats once the
    list is exhausted. Exceptions in any script are raised instead of returned.
    """

    def __init__(
        self,
        track_result: Scripted | None = None,
        action_results: Optional[list[Scripted]] = None,
        validate_result: Scripted | None = None,
        track_delay: float = 0.0,
    ) -> None:
        self.track_result = track_result or TrackResult(state="ALLOW")
        self.action_results = list(action_results or [ActionResult(state="CHALLENGE_SUCCEEDED")])
        self.validate_result = validate_result or ValidateResult(is_valid=True, state="CHALLENGE_SUCCEEDED")
        self.track_delay = track_delay
        self.track_calls: list[dict[str, Any]] = []
        self.action_calls: list[tuple[str, str, str]] = []
        self.validate_calls: list[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def track_action(
        self,
        user_id: str,
        action: str,
        redirect_url: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        custom: Optional[dict[str, Any]] = None,
    ) -> TrackResult:
        with self._lock:
            self.track_calls.append({
                "user_id": user_id,
                "action": action,
                "redirect_url": redirect_url,
                "ip_address": ip_address,
                "user_agent": user_agent,
                "custom": custom,
            })
        if self.track_delay:
            time.sleep(self.track_delay)
        return self._play(self.track_result)

    def get_action(self, user_id: str, action: str, idempotency_key: str) -> ActionResult:
        with self._lock:
            self.action_calls.append((user_id, action, idempotency_key))
            scripted = self.action_results.pop(0) if len(self.action_results) > 1 else self.action_results[0]
        return self._play(scripted)

    def validate_challenge(self, token: str) -> ValidateResult:
        with self._lock:
            self.validate_calls.append(token)
        return self._play(self.validate_result)

    def close(self) -> None:
        self.closed = True

    @staticmethod
    def _play(scripted: Scripted):
        if isinstance(scripted, Exception):
            raise scripted
        return scripted


class FailingFlowStore(MemoryFlowStore):
    """MemoryFlowStore whose selected operations raise the given error."""

    def __init__(self, error: Exception, fail_on: set[str], ttl_seconds: int = 900) -> None:
        super().__init__(ttl_seconds=ttl_seconds)
        self.error = error
        self.fail_on = set(fail_on)

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise self.error

    def get(self, flow_id: str):
        self._maybe_fail("get")
        return super().get(flow_id)

    def save(self, record) -> None:
        self._maybe_fail("save")
        super().save(record)

    def refresh_pending(self, record) -> bool:
        self._maybe_fail("refresh_pending")
        return super().refresh_pending(record)

    def acquire_lock(self, flow_id: str, ttl_ms: int):
        self._maybe_fail("acquire_lock")
        return super().acquire_lock(flow_id, ttl_ms)

    def release_lock(self, flow_id: str, owner: str) -> None:
        self._maybe_fail("release_lock")
        super().release_lock(flow_id, owner)

    def healthcheck(self) -> None:
        self._maybe_fail("healthcheck")


__all__ = ["FailingFlowStore", "FakeChallengeClient", "MemoryFlowStore", "RESUME_TEMPLATE", "SECRET", "make_settings"]
