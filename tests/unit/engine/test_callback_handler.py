"""Tests for the callback completion handler."""

from __future__ import annotations

import pytest

from authbridge.clients.authsignal import ChallengeClientCache
from authbridge.core.exceptions import ChallengeServiceError, StoreError
from authbridge.engine.callback import CallbackHandler, CallbackResult
from authbridge.models.challenge import ValidateResult
from authbridge.models.flow import CompletedFlowRecord, FlowOutcome, PendingFlowRecord
from tests.fakes import SECRET, FailingFlowStore, FakeChallengeClient

RESUME = "https://asgardeo.example.com/logincontext?flowId=flow-1"


def _pending() -> PendingFlowRecord:
    return PendingFlowRecord(
        flow_id="flow-1",
        user_id="user-1",
        resume_url=RESUME,
        redirect_url="https://challenge.example.com/1",
    )


@pytest.fixture
def handler(store, clients) -> CallbackHandler:
    store.save(_pending())
    return CallbackHandler(store=store, clients=clients)


class TestValidation:
    def test_valid_token_completes_success(self, handler, store, fake_client):
        result = handler.handle("flow-1", "tok")
        assert result == CallbackResult.redirect(RESUME)
        assert fake_client.validate_calls == ["tok"]
        record = store.get("flow-1")
        assert isinstance(record, CompletedFlowRecord)
        assert record.outcome == FlowOutcome.SUCCESS

    def test_invalid_token_completes_failed(self, handler, store, fake_client):
        fake_client.validate_result = ValidateResult(is_valid=False, state="CHALLENGE_FAILED")
        assert handler.handle("flow-1", "tok").location == RESUME
        record = store.get("flow-1")
        assert record.outcome == FlowOutcome.FAILED
        assert record.failure_reason == "authsignal_challenge_failed"

    def test_missing_token_fails_without_validation(self, handler, store, fake_client):
        result = handler.handle("flow-1", "   ")
        assert result.status_code == 302
        assert fake_client.validate_calls == []
        assert store.get("flow-1").failure_reason == "callback_token_missing"

    def test_validation_error_marks_failed_and_redirects(self, handler, store, fake_client):
        fake_client.validate_result = ChallengeServiceError("down", status_code=503, transient=True)
        assert handler.handle("flow-1", "tok") == CallbackResult.redirect(RESUME)
        assert store.get("flow-1").failure_reason == "authsignal_validate_error"


class TestFlowLookup:
    def test_missing_flow_id(self, handler):
        result = handler.handle(None, "tok")
        assert result.status_code == 400
        assert result.title == "Missing flow ID"

    def test_unknown_flow(self, handler):
        result = handler.handle("nope", "tok")
        assert result.status_code == 404
        assert result.title == "Flow not found"

    def test_completed_flow_is_not_revalidated(self, handler, store, fake_client):
        store.save(_pending().complete(FlowOutcome.SUCCESS))
        assert handler.handle("flow-1", "tok") == CallbackResult.redirect(RESUME)
        assert fake_client.validate_calls == []


class TestStoreFailures:
    def test_store_read_failure_renders_error_page(self, fake_client):
        store = FailingFlowStore(StoreError("down"), fail_on={"get"})
        clients = ChallengeClientCache(lambda secret: fake_client, default_credential=SECRET)
        result = CallbackHandler(store=store, clients=clients).handle("flow-1", "tok")
        assert result.status_code == 500
        assert result.title == "Authentication error"

    def test_save_failure_after_validation_renders_error_page(self, fake_client):
        store = FailingFlowStore(StoreError("down"), fail_on=set())
        store.save(_pending())
        store.fail_on.add("save")
        clients = ChallengeClientCache(lambda secret: fake_client, default_credential=SECRET)
        result = CallbackHandler(store=store, clients=clients).handle("flow-1", "tok")
        assert result.status_code == 500
        assert fake_client.validate_calls == ["tok"]
