"""Challenge service clients."""

from __future__ import annotations

from authbridge.clients.authsignal import AuthsignalClient, ChallengeClientCache
from authbridge.core.config import AppSettings
from authbridge.core.exceptions import ConfigurationError


def create_client_cache(settings: AppSettings | None = None) -> ChallengeClientCache:
    """Create the client cache for the configured credential mode.

    In ``static`` mode every call uses the configured secret; in ``caller``
    mode clients are created per inbound caller credential.
    """
    if settings is None:
        settings = AppSettings()

    config = settings.authsignal
    default_credential = config.secret.get_secret_value() if config.secret else None
    if config.credential_mode == "static" and not default_credential:
        raise ConfigurationError("An Authsignal secret is required in static credential mode")

    def factory(secret: str) -> AuthsignalClient:
        return AuthsignalClient(
            secret,
            api_url=config.api_url,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay,
        )

    return ChallengeClientCache(
        factory,
        default_credential=default_credential if config.credential_mode == "static" else None,
        max_size=config.client_cache_size,
    )


__all__ = ["AuthsignalClient", "ChallengeClientCache", "create_client_cache"]
