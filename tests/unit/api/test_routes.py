"""HTTP-level tests for the adapter routes."""

from __future__ import annotations

import base64

import pytest
from fastapi.testclient import TestClient

from authbridge.api.app import create_app
from authbridge.clients.authsignal import ChallengeClientCache
from authbridge.core.config import AsgardeoConfig, AuthsignalConfig
from authbridge.core.exceptions import StoreError
from authbridge.models.challenge import ActionResult, TrackResult
from authbridge.models.flow import FlowOutcome, PendingFlowRecord
from tests.fakes import RESUME_TEMPLATE, FailingFlowStore, FakeChallengeClient, make_settings

CHALLENGE = TrackResult(state="CHALLENGE_REQUIRED", idempotency_key="k1", url="https://x/1")


def _body(flow_id: str = "flow-1", **extra) -> dict:
    return {"flowId": flow_id, "event": {"user": {"id": "user-1"}}, **extra}


@pytest.fixture
def client(settings, store, clients) -> TestClient:
    return TestClient(create_app(settings, store=store, clients=clients))


@pytest.fixture
def callback_client(store, clients) -> TestClient:
    settings = make_settings(reentry_mode="callback")
    return TestClient(create_app(settings, store=store, clients=clients), follow_redirects=False)


class TestAuthenticate:
    def test_poll_flow_end_to_end(self, client, fake_client):
        fake_client.track_result = CHALLENGE
        fake_client.action_results = [
            ActionResult(state="CHALLENGE_REQUIRED"),
            ActionResult(state="CHALLENGE_SUCCEEDED"),
        ]
        first = client.post("/api/authenticate", json=_body())
        assert first.status_code == 200
        assert first.json() == {"status": "INCOMPLETE", "operations": [{"op": "redirect", "url": "https://x/1"}]}
        assert client.post("/api/authenticate", json=_body()).json() == first.json()
        assert client.post("/api/authenticate", json=_body()).json() == {"status": "SUCCESS"}
        assert len(fake_client.track_calls) == 1

    def test_block_on_initiation(self, client, fake_client):
        fake_client.track_result = TrackResult(state="BLOCK")
        response = client.post("/api/authenticate", json=_body())
        assert response.status_code == 200
        assert response.json()["failureReason"] == "authsignal_block"

    def test_client_context_is_forwarded(self, client, fake_client):
        client.post(
            "/api/authenticate",
            json=_body(),
            headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1", "user-agent": "browser/2"},
        )
        call = fake_client.track_calls[0]
        assert call["ip_address"] == "203.0.113.7"
        assert call["user_agent"] == "browser/2"

    def test_untrusted_proxy_header_is_ignored(self, store, clients, fake_client):
        app = create_app(make_settings(trust_proxy=False), store=store, clients=clients)
        TestClient(app).post("/api/authenticate", json=_body(), headers={"x-forwarded-for": "203.0.113.7"})
        assert fake_client.track_calls[0]["ip_address"] != "203.0.113.7"

    @pytest.mark.parametrize("payload", [{}, {"flowId": ""}, ["flowId"], {"flowId": 12}])
    def test_invalid_payload(self, client, payload):
        response = client.post("/api/authenticate", json=payload)
        assert response.status_code == 400
        assert response.json() == {
            "status": "ERROR",
            "errorCode": "INVALID_REQUEST",
            "errorDescription": "Invalid request payload",
        }

    def test_non_json_body(self, client):
        response = client.post("/api/authenticate", content=b"not json", headers={"content-type": "application/json"})
        assert response.status_code == 400

    def test_missing_user_is_200_error(self, client):
        response = client.post("/api/authenticate", json={"flowId": "flow-1"})
        assert response.status_code == 200
        assert response.json()["errorCode"] == "MISSING_USER"

    def test_internal_error_is_200_envelope(self, settings, clients):
        store = FailingFlowStore(StoreError("down"), fail_on={"get"})
        response = TestClient(create_app(settings, store=store, clients=clients)).post(
            "/api/authenticate", json=_body()
        )
        assert response.status_code == 200
        assert response.json()["errorCode"] == "INTERNAL_ERROR"


class TestInboundAuth:
    def _app(self, store, clients, **asgardeo) -> TestClient:
        config = AsgardeoConfig(resume_url_template=RESUME_TEMPLATE, **asgardeo)
        return TestClient(create_app(make_settings(asgardeo=config), store=store, clients=clients))

    def test_bearer(self, store, clients):
        client = self._app(store, clients, auth_mode="bearer", bearer_token="tkn")
        assert client.post("/api/authenticate", json=_body()).status_code == 401
        denied = client.post("/api/authenticate", json=_body(), headers={"authorization": "Bearer nope"})
        assert denied.status_code == 401
        assert denied.json() == {"error": "unauthorized"}
        ok = client.post("/api/authenticate", json=_body(), headers={"authorization": "Bearer tkn"})
        assert ok.status_code == 200

    def test_basic(self, store, clients):
        client = self._app(store, clients, auth_mode="basic", basic_username="asg", basic_password="pw")
        good = base64.b64encode(b"asg:pw").decode()
        bad = base64.b64encode(b"asg:wrong").decode()
        assert client.post("/api/authenticate", json=_body(), headers={"authorization": f"Basic {bad}"}).status_code == 401
        assert client.post("/api/authenticate", json=_body(), headers={"authorization": "Basic !!"}).status_code == 401
        assert client.post("/api/authenticate", json=_body(), headers={"authorization": f"Basic {good}"}).status_code == 200

    def test_api_key(self, store, clients):
        client = self._app(store, clients, auth_mode="api-key", api_key_header="X-Key", api_key_value="k")
        assert client.post("/api/authenticate", json=_body(), headers={"x-key": "wrong"}).status_code == 401
        assert client.post("/api/authenticate", json=_body(), headers={"x-key": "k"}).status_code == 200

    def test_auth_checked_before_body(self, store, clients):
        client = self._app(store, clients, auth_mode="bearer", bearer_token="tkn")
        assert client.post("/api/authenticate", content=b"junk").status_code == 401


class TestCallerCredentials:
    def test_bearer_token_selects_tenant_client(self, store):
        created: dict[str, FakeChallengeClient] = {}

        def factory(secret: str) -> FakeChallengeClient:
            return created.setdefault(secret, FakeChallengeClient())

        settings = make_settings(authsignal=AuthsignalConfig(credential_mode="caller"))
        client = TestClient(create_app(settings, store=store, clients=ChallengeClientCache(factory)))

        assert client.post("/api/authenticate", json=_body()).status_code == 401
        response = client.post("/api/authenticate", json=_body(), headers={"authorization": "Bearer tenant-a"})
        assert response.json() == {"status": "SUCCESS"}
        assert list(created) == ["tenant-a"]
        assert len(created["tenant-a"].track_calls) == 1


class TestHealth:
    def test_healthz(self, client):
        assert client.get("/healthz").json() == {"status": "ok"}

    def test_readyz_ok(self, client):
        response = client.get("/readyz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_readyz_store_down(self, settings, clients):
        store = FailingFlowStore(StoreError("down"), fail_on={"healthcheck"})
        response = TestClient(create_app(settings, store=store, clients=clients)).get("/readyz")
        assert response.status_code == 503
        assert response.json() == {"status": "error"}

    def test_unknown_route(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "not_found"}


class TestCallbackRoute:
    def test_absent_in_poll_mode(self, client):
        assert client.get("/api/callback", params={"flowId": "flow-1"}).status_code == 404

    def test_callback_completes_flow(self, callback_client, store, fake_client):
        fake_client.track_result = CHALLENGE
        first = callback_client.post("/api/authenticate", json=_body())
        assert first.json()["status"] == "INCOMPLETE"
        assert fake_client.track_calls[0]["redirect_url"] == "https://adapter.example.com/api/callback?flowId=flow-1"

        redirect = callback_client.get("/api/callback", params={"flowId": "flow-1", "token": "tok"})
        assert redirect.status_code == 302
        assert redirect.headers["location"] == "https://asgardeo.example.com/logincontext?flowId=flow-1"
        assert store.get("flow-1").outcome == FlowOutcome.SUCCESS

        assert callback_client.post("/api/authenticate", json=_body()).json() == {"status": "SUCCESS"}
        assert fake_client.action_calls == []

    def test_callback_without_token_fails_flow(self, callback_client, store, fake_client):
        store.save(PendingFlowRecord(flow_id="flow-2", user_id="u", resume_url="https://r/2", redirect_url="https://x/2"))
        response = callback_client.get("/api/callback", params={"flowId": "flow-2"})
        assert response.status_code == 302
        assert fake_client.validate_calls == []
        final = callback_client.post("/api/authenticate", json=_body("flow-2")).json()
        assert final["status"] == "FAILED"
        assert final["failureReason"] == "callback_token_missing"

    def test_missing_flow_id_page(self, callback_client):
        response = callback_client.get("/api/callback")
        assert response.status_code == 400
        assert "Missing flow ID" in response.text
        assert response.headers["content-type"].startswith("text/html")

    def test_unknown_flow_page(self, callback_client):
        response = callback_client.get("/api/callback", params={"flowId": "gone", "token": "t"})
        assert response.status_code == 404
        assert "Flow not found" in response.text
