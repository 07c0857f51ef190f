"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings


class StoreConfig(BaseSettings):
    """Flow store backend configuration."""

    model_config = {"env_prefix": "AUTHBRIDGE_STORE_"}

    driver: Literal["memory", "redis"] = "memory"
    flow_ttl_seconds: int = Field(default=900, ge=60)
    redis_url: Optional[str] = None
    key_prefix: str = "asgardeo-authsignal-adapter"

    @field_validator("redis_url", mode="before")
    @classmethod
    def _blank_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _redis_needs_url(self) -> "StoreConfig":
        if self.driver == "redis" and not self.redis_url:
            raise ValueError("redis_url is required when driver is 'redis'")
        return self


class AuthsignalConfig(BaseSettings):
    """External challenge service (Authsignal) configuration."""

    model_config = {"env_prefix": "AUTHBRIDGE_AUTHSIGNAL_"}

    api_url: str = "https://api.authsignal.com"
    secret: Optional[SecretStr] = None
    timeout_seconds: float = Field(default=5.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    retry_base_delay: float = Field(default=0.15, ge=0)
    # "caller": the secret is the inbound caller's bearer token (multi-tenant)
    credential_mode: Literal["static", "caller"] = "static"
    client_cache_size: int = Field(default=128, ge=1)

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class AsgardeoConfig(BaseSettings):
    """Identity platform (Asgardeo) integration configuration."""

    model_config = {"env_prefix": "AUTHBRIDGE_ASGARDEO_"}

    resume_url_template: str = "https://api.asgardeo.io/t/{tenant}/logincontext?flowId={flowId}"
    auth_mode: Literal["none", "basic", "bearer", "api-key"] = "none"
    basic_username: Optional[str] = None
    basic_password: Optional[SecretStr] = None
    bearer_token: Optional[SecretStr] = None
    api_key_header: str = "x-asgardeo-api-key"
    api_key_value: Optional[SecretStr] = None

    @field_validator("resume_url_template")
    @classmethod
    def _template_has_flow_id(cls, value: str) -> str:
        if "{flowId}" not in value:
            raise ValueError("resume_url_template must include {flowId}")
        return value

    @field_validator("api_key_header")
    @classmethod
    def _lowercase_header(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def _credentials_for_mode(self) -> "AsgardeoConfig":
        if self.auth_mode == "basic" and (not self.basic_username or not self.basic_password):
            raise ValueError("basic_username and basic_password are required for basic auth")
        if self.auth_mode == "bearer" and not self.bearer_token:
            raise ValueError("bearer_token is required for bearer auth")
        if self.auth_mode == "api-key" and not self.api_key_value:
            raise ValueError("api_key_value is required for api-key auth")
        return self


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "AUTHBRIDGE_"}

    environment: Literal["dev", "test", "prod"] = "dev"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(default=3000, gt=0, lt=65536)
    public_base_url: str = "http://localhost:3000"
    callback_path: str = "/api/callback"
    trust_proxy: bool = True
    reentry_mode: Literal["poll", "callback"] = "poll"
    lock_ttl_ms: int = Field(default=30_000, gt=0)

    store: StoreConfig = Field(default_factory=StoreConfig)
    authsignal: AuthsignalConfig = Field(default_factory=AuthsignalConfig)
    asgardeo: AsgardeoConfig = Field(default_factory=AsgardeoConfig)

    @field_validator("callback_path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        value = value.strip()
        return value if value.startswith("/") else f"/{value}"

    @model_validator(mode="after")
    def _caller_credentials(self) -> "AppSettings":
        if self.authsignal.credential_mode == "caller":
            if self.asgardeo.auth_mode != "none":
                raise ValueError("caller credential mode requires asgardeo auth_mode 'none'")
            if self.reentry_mode != "poll":
                raise ValueError("caller credential mode requires reentry_mode 'poll'")
        return self
