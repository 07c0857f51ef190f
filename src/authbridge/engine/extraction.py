"""Field extraction from the loosely-typed authenticate payload, and URL building."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Iterable, Optional, Union
from urllib.parse import parse_qs, quote, urlencode, urljoin, urlsplit, urlunsplit

from authbridge.models.asgardeo import AuthenticateRequest

Extractor = Callable[[Mapping[str, Any]], Optional[str]]
Payload = Union[AuthenticateRequest, Mapping[str, Any]]

TENANT_KEYS = ("tenant", "tenantDomain", "organization", "org", "organizationName")


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def field_at(*keys: str) -> Extractor:
    """Extractor reading a nested string field; missing or non-mapping steps yield None."""

    def extract(data: Mapping[str, Any]) -> Optional[str]:
        current: Any = data
        for key in keys:
            if not isinstance(current, Mapping):
                return None
            current = current.get(key)
        return _text(current)

    return extract


def first_match(data: Mapping[str, Any], extractors: Iterable[Extractor]) -> Optional[str]:
    for extractor in extractors:
        value = extractor(data)
        if value:
            return value
    return None


USER_ID_EXTRACTORS: tuple[Extractor, ...] = (
    field_at("event", "user", "id"),
    field_at("event", "user", "username"),
    field_at("event", "user", "email"),
    field_at("event", "user", "claims", "sub"),
    field_at("event", "user", "claims", "user_id"),
)

TENANT_HINT_EXTRACTORS: tuple[Extractor, ...] = (
    *(field_at(key) for key in TENANT_KEYS),
    *(field_at("event", key) for key in TENANT_KEYS),
    *(field_at("event", "context", key) for key in TENANT_KEYS),
)


def _as_data(payload: Payload) -> Mapping[str, Any]:
    if isinstance(payload, AuthenticateRequest):
        return payload.as_data()
    return payload


def resolve_user_id(payload: Payload) -> Optional[str]:
    """First non-blank of user id, username, email, claims.sub, claims.user_id."""
    return first_match(_as_data(payload), USER_ID_EXTRACTORS)


def extract_tenant_hint(payload: Payload) -> Optional[str]:
    """Tenant/organization hint from the top level, then event, then event.context."""
    return first_match(_as_data(payload), TENANT_HINT_EXTRACTORS)


def can_redirect(request: AuthenticateRequest) -> bool:
    if request.allowed_operations is None:
        return True
    return any(operation.op == "redirect" for operation in request.allowed_operations)


def build_resume_url(template: str, flow_id: str, tenant_hint: Optional[str] = None) -> str:
    """Fill ``{flowId}``, ``{tenant}`` and ``{organization}`` and ensure a flowId query parameter."""
    tenant = quote(tenant_hint, safe="") if tenant_hint else ""
    resolved = (
        template.replace("{flowId}", quote(flow_id, safe=""))
        .replace("{tenant}", tenant)
        .replace("{organization}", tenant)
    )
    parts = urlsplit(resolved)
    if "flowId" in parse_qs(parts.query, keep_blank_values=True):
        return resolved
    flow_query = urlencode({"flowId": flow_id})
    query = f"{parts.query}&{flow_query}" if parts.query else flow_query
    return urlunsplit(parts._replace(query=query))


def build_callback_url(public_base_url: str, callback_path: str, flow_id: str) -> str:
    parts = urlsplit(urljoin(public_base_url, callback_path))
    return urlunsplit(parts._replace(query=urlencode({"flowId": flow_id})))
