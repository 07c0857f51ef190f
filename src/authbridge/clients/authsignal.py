"""Resilient HTTP client for the Authsignal server API."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from authbridge.core.exceptions import ChallengeServiceError, ConfigurationError
from authbridge.core.protocols import IChallengeClient
from authbridge.core.types import JsonDict
from authbridge.models.challenge import ActionResult, TrackResult, ValidateResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_BASE_DELAY = 0.15


def _segment(value: str) -> str:
    return quote(value, safe="")


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class AuthsignalClient:
    """IChallengeClient over HTTP with bounded timeout and retry with backoff.

    Retries transport errors (connection failures, timeouts) and 429/5xx
    responses up to ``max_retries`` times, sleeping
    ``retry_base_delay * 2 ** attempt`` between attempts. Any other error
    status fails immediately.
    """

    def __init__(
        self,
        secret: str,
        api_url: str = "https://api.authsignal.com",
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._sleep = sleep
        self._http = httpx.Client(
            base_url=api_url.rstrip("/"),
            auth=httpx.BasicAuth(secret, ""),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def track_action(
        self,
        user_id: str,
        action: str,
        redirect_url: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        custom: Optional[JsonDict] = None,
    ) -> TrackResult:
        body: JsonDict = {"redirectUrl": redirect_url}
        if ip_address:
            body["ipAddress"] = ip_address
        if user_agent:
            body["userAgent"] = user_agent
        if custom:
            body["custom"] = custom
        data = self._request("POST", f"/v1/users/{_segment(user_id)}/actions/{_segment(action)}", body)
        return self._parse(TrackResult, data)

    def get_action(self, user_id: str, action: str, idempotency_key: str) -> ActionResult:
        path = f"/v1/users/{_segment(user_id)}/actions/{_segment(action)}/{_segment(idempotency_key)}"
        return self._parse(ActionResult, self._request("GET", path))

    def validate_challenge(self, token: str) -> ValidateResult:
        return self._parse(ValidateResult, self._request("POST", "/v1/validate", {"token": token}))

    def close(self) -> None:
        self._http.close()

    def _retry_delay(self, attempt: int) -> float:
        return self._retry_base_delay * 2 ** attempt

    def _request(self, method: str, path: str, body: Optional[JsonDict] = None) -> JsonDict:
        attempt = 0
        while True:
            try:
                response = self._http.request(method, path, json=body)
            except httpx.TransportError as exc:
                if attempt < self._max_retries:
                    logger.warning("Authsignal %s %s transport error (attempt %d): %s", method, path, attempt + 1, exc)
                    self._sleep(self._retry_delay(attempt))
                    attempt += 1
                    continue
                raise ChallengeServiceError(
                    f"Authsignal {method} {path} failed after {attempt + 1} attempts: {exc}",
                    transient=True,
                ) from exc

            if _is_retryable_status(response.status_code):
                if attempt < self._max_retries:
                    logger.warning(
                        "Authsignal %s %s returned %d (attempt %d)",
                        method, path, response.status_code, attempt + 1,
                    )
                    self._sleep(self._retry_delay(attempt))
                    attempt += 1
                    continue
                raise ChallengeServiceError(
                    f"Authsignal request failed with status {response.status_code}: {response.text}",
                    status_code=response.status_code,
                    transient=True,
                )

            if response.is_error:
                raise ChallengeServiceError(
                    f"Authsignal request failed with status {response.status_code}: {response.text}",
                    status_code=response.status_code,
                )

            return self._decode(response)

    @staticmethod
    def _decode(response: httpx.Response) -> JsonDict:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise ChallengeServiceError(
                f"Authsignal returned a non-JSON body: {exc}", status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise ChallengeServiceError("Authsignal returned an unexpected JSON shape", status_code=response.status_code)
        return data

    @staticmethod
    def _parse(model, data: JsonDict):
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ChallengeServiceError(f"Unparseable Authsignal response: {exc}") from exc


class ChallengeClientCache:
    """Process-owned map from credential to challenge client.

    Holds one client per distinct credential, evicting the least recently
    used one beyond ``max_size``. ``get()`` without a credential returns the
    client for ``default_credential``.
    """

    def __init__(
        self,
        factory: Callable[[str], IChallengeClient],
        default_credential: Optional[str] = None,
        max_size: int = 128,
    ) -> None:
        self._factory = factory
        self._default_credential = default_credential
        self._max_size = max_size
        self._clients: OrderedDict[str, IChallengeClient] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, credential: Optional[str] = None) -> IChallengeClient:
        key = credential or self._default_credential
        if not key:
            raise ConfigurationError("No challenge service credential available")
        evicted: list[IChallengeClient] = []
        with self._lock:
            client = self._clients.get(key)
            if client is not None:
                self._clients.move_to_end(key)
                return client
            client = self._factory(key)
            self._clients[key] = client
            while len(self._clients) > self._max_size:
                _, old = self._clients.popitem(last=False)
                evicted.append(old)
        for old in evicted:
            old.close()
        return client

    def __len__(self) -> int:
        return len(self._clients)

    def close(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()
