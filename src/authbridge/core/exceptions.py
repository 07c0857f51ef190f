"""AuthBridge exception hierarchy."""

from __future__ import annotations


class AuthBridgeError(Exception):
    """Base exception for all AuthBridge errors."""


class ConfigurationError(AuthBridgeError):
    """Settings are inconsistent or incomplete for the selected deployment."""


class StoreError(AuthBridgeError):
    """Flow store backend operation failed."""


class ChallengeServiceError(AuthBridgeError):
    """Call to the external challenge service failed."""

    def __init__(self, message: str, status_code: int | None = None, transient: bool = False) -> None:
        self.status_code = status_code
        self.transient = transient
        super().__init__(message)
