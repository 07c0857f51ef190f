"""Out-of-band completion: the challenge service redirects the user here with a token."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from authbridge.clients.authsignal import ChallengeClientCache
from authbridge.core.protocols import IFlowStore
from authbridge.engine.states import classify_validation
from authbridge.models.flow import FlowOutcome, FlowStatus, PendingFlowRecord

logger = logging.getLogger(__name__)

TOKEN_MISSING_REASON = "callback_token_missing"
VALIDATE_ERROR_REASON = "authsignal_validate_error"


@dataclass(frozen=True)
class CallbackResult:
    """Either a 302 to ``location`` or an HTML page with ``title``/``message``."""

    status_code: int
    location: Optional[str] = None
    title: str = ""
    message: str = ""

    @classmethod
    def redirect(cls, location: str) -> CallbackResult:
        return cls(status_code=302, location=location)

    @classmethod
    def page(cls, status_code: int, title: str, message: str) -> CallbackResult:
        return cls(status_code=status_code, title=title, message=message)


class CallbackHandler:
    """Validates the challenge token and writes the terminal flow state.

    The user is always sent back to the resume URL once the flow is known,
    even when validation fails; the next authenticate call reports FAILED.
    """

    def __init__(self, *, store: IFlowStore, clients: ChallengeClientCache) -> None:
        self._store = store
        self._clients = clients

    def handle(self, flow_id: Optional[str], token: Optional[str]) -> CallbackResult:
        flow_id = (flow_id or "").strip()
        token = (token or "").strip()
        if not flow_id:
            return CallbackResult.page(400, "Missing flow ID", "The callback is missing flowId and cannot continue.")

        pending: Optional[PendingFlowRecord] = None
        try:
            flow = self._store.get(flow_id)
            if flow is None:
                return CallbackResult.page(
                    404, "Flow not found", "This authentication flow is expired or no longer available."
                )
            if flow.status == FlowStatus.COMPLETED:
                return CallbackResult.redirect(flow.resume_url)

            pending = flow
            if not token:
                self._store.save(flow.complete(FlowOutcome.FAILED, TOKEN_MISSING_REASON))
                return CallbackResult.redirect(flow.resume_url)

            result = self._clients.get().validate_challenge(token)
            outcome, reason = classify_validation(result.state, result.is_valid)
            self._store.save(flow.complete(outcome, reason))
            logger.info("flow_id=%s completed via callback with outcome=%s", flow_id, outcome)
            return CallbackResult.redirect(flow.resume_url)
        except Exception:
            logger.exception("Failed to handle Authsignal callback for flow_id=%s", flow_id)

        if pending is not None:
            try:
                self._store.save(pending.complete(FlowOutcome.FAILED, VALIDATE_ERROR_REASON))
                return CallbackResult.redirect(pending.resume_url)
            except Exception:
                logger.exception("Failed to persist callback failure status for flow_id=%s", flow_id)

        return CallbackResult.page(500, "Authentication error", "Could not complete callback processing.")
