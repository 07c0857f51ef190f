"""Shared fixtures: settings, flow stores, scripted challenge client, reconciler."""

from __future__ import annotations

import fakeredis
import pytest

from authbridge.clients.authsignal import ChallengeClientCache
from authbridge.core.config import AppSettings
from authbridge.core.protocols import IFlowStore
from authbridge.engine.reconciler import FlowReconciler
from authbridge.engine.resolver import create_resolver
from authbridge.persistence.redis_backend import RedisFlowStore
from tests.fakes import SECRET, FakeChallengeClient, MemoryFlowStore, make_settings


@pytest.fixture
def settings() -> AppSettings:
    return make_settings()


@pytest.fixture(params=["memory", "redis"])
def store(request) -> IFlowStore:
    """Every flow-level test runs against both store backends."""
    if request.param == "memory":
        backend = MemoryFlowStore(ttl_seconds=900)
    else:
        client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
        backend = RedisFlowStore(ttl_seconds=900, key_prefix="test-adapter", client=client)
    yield backend
    backend.close()


@pytest.fixture
def fake_client() -> FakeChallengeClient:
    return FakeChallengeClient()


@pytest.fixture
def clients(fake_client) -> ChallengeClientCache:
    return ChallengeClientCache(lambda secret: fake_client, default_credential=SECRET)


@pytest.fixture
def reconciler(store, clients, settings) -> FlowReconciler:
    return FlowReconciler(
        store=store,
        resolver=create_resolver(settings.reentry_mode, store),
        clients=clients,
        settings=settings,
    )
