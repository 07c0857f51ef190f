"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from authbridge.api.routes import authenticate, callback, health
from authbridge.api.security import RequestAuthenticator
from authbridge.clients import ChallengeClientCache, create_client_cache
from authbridge.core.config import AppSettings
from authbridge.core.protocols import IFlowStore
from authbridge.engine.callback import CallbackHandler
from authbridge.engine.reconciler import FlowReconciler
from authbridge.engine.resolver import create_resolver
from authbridge.persistence import create_flow_store

logger = logging.getLogger("authbridge.http")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Release the store and challenge clients on shutdown."""
    yield
    app.state.clients.close()
    app.state.store.close()
    logger.info("Shutdown complete")


async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = int((time.perf_counter() - started) * 1000)
    status_code = response.status_code
    level = logging.ERROR if status_code >= 500 else logging.WARNING if status_code >= 400 else logging.INFO
    logger.log(level, "HTTP %s %s -> %d (%d ms)", request.method, request.url.path, status_code, duration_ms)
    return response


async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = "not_found" if exc.status_code == 404 else exc.detail
    return JSONResponse(status_code=exc.status_code, content={"error": error}, headers=exc.headers)


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    store: Optional[IFlowStore] = None,
    clients: Optional[ChallengeClientCache] = None,
) -> FastAPI:
    """Create and wire the adapter.

    The store backend and re-entry variant are fixed here, at startup, from
    ``settings``; tests may inject ``store`` and ``clients`` directly.
    """
    if settings is None:
        settings = AppSettings()
    if store is None:
        store = create_flow_store(settings)
    if clients is None:
        clients = create_client_cache(settings)

    app = FastAPI(
        title="AuthBridge Asgardeo/Authsignal Adapter",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.clients = clients
    app.state.authenticator = RequestAuthenticator(settings.asgardeo)
    app.state.reconciler = FlowReconciler(
        store=store,
        resolver=create_resolver(settings.reentry_mode, store),
        clients=clients,
        settings=settings,
    )
    app.state.callback_handler = CallbackHandler(store=store, clients=clients)

    app.middleware("http")(log_requests)
    app.add_exception_handler(StarletteHTTPException, http_error)
    app.include_router(health.router)
    app.include_router(authenticate.router, prefix="/api")
    if settings.reentry_mode == "callback":
        app.include_router(callback.build_router(settings.callback_path))
    return app
