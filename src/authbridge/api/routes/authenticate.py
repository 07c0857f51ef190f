"""Identity platform custom-authentication endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from authbridge.api.security import bearer_token, client_ip, require_request_auth
from authbridge.engine.reconciler import RequestContext
from authbridge.models.asgardeo import AuthenticateRequest, AuthResponse, ErrorCode

router = APIRouter(tags=["authenticate"])


@router.post("/authenticate", dependencies=[Depends(require_request_auth)])
async def authenticate(request: Request) -> JSONResponse:
    """Advance the flow named by ``flowId`` and answer with the action envelope.

    Every outcome, including lock contention and internal faults, is a 200
    with an envelope; only a malformed body yields 400.
    """
    try:
        payload = AuthenticateRequest.model_validate(await request.json())
    except ValueError:
        invalid = AuthResponse.error(ErrorCode.INVALID_REQUEST, "Invalid request payload")
        return JSONResponse(status_code=400, content=invalid.to_payload())

    settings = request.app.state.settings
    credential = None
    if settings.authsignal.credential_mode == "caller":
        credential = bearer_token(request)
        if credential is None:
            raise HTTPException(status_code=401, detail="unauthorized")

    context = RequestContext(
        ip_address=client_ip(request, settings.trust_proxy),
        user_agent=request.headers.get("user-agent"),
        credential=credential,
    )
    result = await run_in_threadpool(request.app.state.reconciler.authenticate, payload, context)
    return JSONResponse(status_code=200, content=result.to_payload())
