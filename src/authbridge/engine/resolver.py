"""Re-entry resolution for flows that already have a pending challenge."""

from __future__ import annotations

import logging
from typing import Literal, Protocol

from authbridge.core.exceptions import ChallengeServiceError
from authbridge.core.protocols import IChallengeClient, IFlowStore
from authbridge.engine.extraction import can_redirect
from authbridge.engine.states import StateKind, classify_state, failure_reason
from authbridge.models.asgardeo import AuthenticateRequest, AuthResponse, ErrorCode
from authbridge.models.flow import CompletedFlowRecord, FlowOutcome, PendingFlowRecord

logger = logging.getLogger(__name__)

CHALLENGE_FAILED_REASON = "CHALLENGE_FAILED"
CHALLENGE_FAILED_DESCRIPTION = "Authentication challenge failed"


def completed_response(record: CompletedFlowRecord) -> AuthResponse:
    """Replay a terminal record verbatim."""
    if record.outcome == FlowOutcome.SUCCESS:
        return AuthResponse.success()
    return AuthResponse.failed(record.failure_reason or CHALLENGE_FAILED_REASON, CHALLENGE_FAILED_DESCRIPTION)


def redirect_response(redirect_url: str, request: AuthenticateRequest) -> AuthResponse:
    if not can_redirect(request):
        return AuthResponse.error(ErrorCode.REDIRECT_NOT_ALLOWED, "Redirect operation not allowed")
    return AuthResponse.incomplete(redirect_url)


class ReentryResolver(Protocol):
    def resolve(
        self, record: PendingFlowRecord, request: AuthenticateRequest, client: IChallengeClient
    ) -> AuthResponse: ...


class PollingReentryResolver:
    """Reads the challenge status from the service on every re-entry.

    A failing status read never fails the login: the flow stays pending,
    its TTL is refreshed and the caller is redirected again. The refresh
    never overwrites a completed record.
    """

    def __init__(self, store: IFlowStore) -> None:
        self._store = store

    def resolve(
        self, record: PendingFlowRecord, request: AuthenticateRequest, client: IChallengeClient
    ) -> AuthResponse:
        if record.idempotency_key and record.action:
            try:
                result = client.get_action(record.user_id, record.action, record.idempotency_key)
            except ChallengeServiceError as exc:
                logger.warning("Status read failed for flow_id=%s, keeping flow pending: %s", record.flow_id, exc)
            else:
                kind = classify_state(result.state)
                if kind is StateKind.SUCCESS:
                    self._store.save(record.complete(FlowOutcome.SUCCESS))
                    return AuthResponse.success()
                if kind is StateKind.FAILED:
                    reason = failure_reason(result.state)
                    self._store.save(record.complete(FlowOutcome.FAILED, reason))
                    return AuthResponse.failed(reason, CHALLENGE_FAILED_DESCRIPTION)
                logger.debug("flow_id=%s still pending (state=%s)", record.flow_id, result.state)

        if not self._store.refresh_pending(record.touch()):
            current = self._store.get(record.flow_id)
            if isinstance(current, CompletedFlowRecord):
                # A concurrent re-entry completed the flow while the status read was in flight.
                return completed_response(current)
        return redirect_response(record.redirect_url, request)


class CallbackReentryResolver:
    """Completion is written by the callback endpoint; re-entry only redirects again."""

    def resolve(
        self, record: PendingFlowRecord, request: AuthenticateRequest, client: IChallengeClient
    ) -> AuthResponse:
        return redirect_response(record.redirect_url, request)


def create_resolver(mode: Literal["poll", "callback"], store: IFlowStore) -> ReentryResolver:
    if mode == "callback":
        return CallbackReentryResolver()
    return PollingReentryResolver(store)
