"""Redirect target used by the challenge service in the callback deployment."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from authbridge.api.pages import render_simple_page


def build_router(path: str) -> APIRouter:
    """Router serving ``GET {path}?flowId=...&token=...``."""
    router = APIRouter(tags=["callback"])

    @router.get(path)
    def callback(
        request: Request,
        flow_id: Optional[str] = Query(default=None, alias="flowId"),
        token: Optional[str] = Query(default=None),
    ) -> Response:
        result = request.app.state.callback_handler.handle(flow_id, token)
        if result.location is not None:
            return RedirectResponse(url=result.location, status_code=result.status_code)
        return HTMLResponse(render_simple_page(result.title, result.message), status_code=result.status_code)

    return router
