"""Static-credential authentication of inbound identity platform calls."""

from __future__ import annotations

import base64
import binascii
import hmac
from typing import Optional

from fastapi import HTTPException, Request

from authbridge.core.config import AsgardeoConfig


def _equals(left: str, right: str) -> bool:
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=401, detail="unauthorized")


def _parse_basic(header_value: str) -> Optional[tuple[str, str]]:
    """Parse 'Basic <base64(user:password)>'. Returns (user, password) or None."""
    if not header_value.startswith("Basic "):
        return None
    try:
        decoded = base64.b64decode(header_value[len("Basic "):], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    if ":" not in decoded:
        return None
    username, _, password = decoded.partition(":")
    return username, password


def bearer_token(request: Request) -> Optional[str]:
    header_value = request.headers.get("authorization", "")
    if not header_value.startswith("Bearer "):
        return None
    return header_value[len("Bearer "):].strip() or None


class RequestAuthenticator:
    """Checks the configured static credential; raises 401 on mismatch."""

    def __init__(self, config: AsgardeoConfig) -> None:
        self._config = config

    def __call__(self, request: Request) -> None:
        config = self._config
        if config.auth_mode == "none":
            return

        if config.auth_mode == "basic":
            credentials = _parse_basic(request.headers.get("authorization", ""))
            if credentials is None:
                raise _unauthorized()
            username, password = credentials
            expected_password = config.basic_password.get_secret_value() if config.basic_password else ""
            # Evaluate both comparisons to keep timing independent of which part differs.
            user_ok = _equals(username, config.basic_username or "")
            password_ok = _equals(password, expected_password)
            if not (user_ok and password_ok):
                raise _unauthorized()
            return

        if config.auth_mode == "bearer":
            token = bearer_token(request)
            expected = config.bearer_token.get_secret_value() if config.bearer_token else ""
            if token is None or not _equals(token, expected):
                raise _unauthorized()
            return

        header_value = request.headers.get(config.api_key_header)
        expected = config.api_key_value.get_secret_value() if config.api_key_value else ""
        if header_value is None or not _equals(header_value, expected):
            raise _unauthorized()


def require_request_auth(request: Request) -> None:
    """FastAPI dependency delegating to the app's configured authenticator."""
    request.app.state.authenticator(request)


def client_ip(request: Request, trust_proxy: bool) -> Optional[str]:
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None
