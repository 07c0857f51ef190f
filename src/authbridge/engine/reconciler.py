"""FlowReconciler: entry point for every inbound authenticate call.

States: NEW (no record) -> PENDING -> COMPLETED(SUCCESS|FAILED). COMPLETED is
terminal. Only the NEW -> first record transition is serialised by the
per-flow lock; re-entry on a pending record is not locked and relies on
idempotent status reads plus a refresh that only rewrites PENDING records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from authbridge.clients.authsignal import ChallengeClientCache
from authbridge.core.config import AppSettings
from authbridge.core.exceptions import ChallengeServiceError, StoreError
from authbridge.core.protocols import AnyFlowRecord, IFlowStore
from authbridge.engine.extraction import (
    build_callback_url,
    build_resume_url,
    can_redirect,
    extract_tenant_hint,
    resolve_user_id,
)
from authbridge.engine.resolver import ReentryResolver, completed_response
from authbridge.engine.states import StateKind, classify_state, failure_reason
from authbridge.models.asgardeo import AuthenticateRequest, AuthResponse, ErrorCode
from authbridge.models.flow import CompletedFlowRecord, FlowOutcome, FlowStatus, PendingFlowRecord

logger = logging.getLogger(__name__)

DEFAULT_ACTION = "login"
DENIED_DESCRIPTION = "Authsignal denied the action"


@dataclass(frozen=True)
class RequestContext:
    """Per-request facts that do not live in the JSON body."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    credential: Optional[str] = None


class FlowReconciler:
    """Turns repeated authenticate calls for one flowId into a single outcome."""

    def __init__(
        self,
        *,
        store: IFlowStore,
        resolver: ReentryResolver,
        clients: ChallengeClientCache,
        settings: AppSettings,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._clients = clients
        self._settings = settings

    def authenticate(self, request: AuthenticateRequest, context: Optional[RequestContext] = None) -> AuthResponse:
        context = context or RequestContext()
        try:
            return self._reconcile(request, context)
        except Exception:
            logger.exception("Failed to process authentication request for flow_id=%s", request.flow_id)
            return AuthResponse.error(ErrorCode.INTERNAL_ERROR, "Internal adapter error")

    def _reconcile(self, request: AuthenticateRequest, context: RequestContext) -> AuthResponse:
        flow_id = request.flow_id

        existing = self._store.get(flow_id)
        if existing is not None:
            return self._resume(existing, request, context)

        owner = self._store.acquire_lock(flow_id, self._settings.lock_ttl_ms)
        if owner is None:
            # The lock holder is most likely about to persist the record.
            raced = self._store.get(flow_id)
            if raced is not None:
                return self._resume(raced, request, context)
            logger.info("flow_id=%s is locked by a concurrent request", flow_id)
            return AuthResponse.error(ErrorCode.FLOW_LOCKED, "Flow is being processed, retry shortly")

        try:
            raced = self._store.get(flow_id)
            if raced is None:
                return self._initiate(request, context)
        finally:
            self._release_lock(flow_id, owner)
        # Re-entry may read the challenge status; that happens outside the lock.
        return self._resume(raced, request, context)

    def _resume(self, record: AnyFlowRecord, request: AuthenticateRequest, context: RequestContext) -> AuthResponse:
        if record.status == FlowStatus.COMPLETED:
            return completed_response(record)
        return self._resolver.resolve(record, request, self._clients.get(context.credential))

    def _release_lock(self, flow_id: str, owner: str) -> None:
        try:
            self._store.release_lock(flow_id, owner)
        except StoreError:
            logger.exception("Failed to release flow lock for flow_id=%s", flow_id)

    def _initiate(self, request: AuthenticateRequest, context: RequestContext) -> AuthResponse:
        flow_id = request.flow_id
        user_id = resolve_user_id(request)
        if not user_id:
            return AuthResponse.error(ErrorCode.MISSING_USER, "No user identifier found in request")

        tenant_hint = extract_tenant_hint(request)
        resume_url = build_resume_url(self._settings.asgardeo.resume_url_template, flow_id, tenant_hint)
        if self._settings.reentry_mode == "callback":
            return_url = build_callback_url(self._settings.public_base_url, self._settings.callback_path, flow_id)
        else:
            return_url = resume_url

        action = request.action_type or DEFAULT_ACTION
        custom: dict[str, Any] = {"asgardeoFlowId": flow_id}
        if request.action_type:
            custom["asgardeoActionType"] = request.action_type

        client = self._clients.get(context.credential)
        try:
            result = client.track_action(
                user_id,
                action,
                return_url,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                custom=custom,
            )
        except ChallengeServiceError as exc:
            logger.error("Authsignal track failed for flow_id=%s (status=%s): %s", flow_id, exc.status_code, exc)
            return AuthResponse.error(ErrorCode.AUTHSIGNAL_ERROR, "Authsignal request failed")

        kind = classify_state(result.state)
        if kind is StateKind.PENDING and self._settings.reentry_mode == "poll" and not result.idempotency_key:
            # Without the key the challenge status can never be read back.
            logger.error("Authsignal track for flow_id=%s returned %s without an idempotency key", flow_id, result.state)
            return AuthResponse.error(ErrorCode.AUTHSIGNAL_ERROR, "Unexpected response from Authsignal")

        if kind is StateKind.PENDING and result.url:
            if not can_redirect(request):
                return AuthResponse.error(ErrorCode.REDIRECT_NOT_ALLOWED, "Redirect operation not allowed")
            self._store.save(
                PendingFlowRecord(
                    flow_id=flow_id,
                    user_id=user_id,
                    resume_url=resume_url,
                    tenant_hint=tenant_hint,
                    redirect_url=result.url,
                    idempotency_key=result.idempotency_key,
                    action=action,
                )
            )
            return AuthResponse.incomplete(result.url)

        if kind is StateKind.SUCCESS:
            self._store.save(
                CompletedFlowRecord(
                    flow_id=flow_id,
                    user_id=user_id,
                    resume_url=resume_url,
                    tenant_hint=tenant_hint,
                    outcome=FlowOutcome.SUCCESS,
                )
            )
            return AuthResponse.success()

        if kind is StateKind.FAILED:
            reason = failure_reason(result.state)
            self._store.save(
                CompletedFlowRecord(
                    flow_id=flow_id,
                    user_id=user_id,
                    resume_url=resume_url,
                    tenant_hint=tenant_hint,
                    outcome=FlowOutcome.FAILED,
                    failure_reason=reason,
                )
            )
            return AuthResponse.failed(reason, DENIED_DESCRIPTION)

        logger.error("Unhandled Authsignal track state %r for flow_id=%s", result.state, flow_id)
        return AuthResponse.error(ErrorCode.AUTHSIGNAL_ERROR, "Unexpected response from Authsignal")
