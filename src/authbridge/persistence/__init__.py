"""Pluggable flow store backends behind the IFlowStore Protocol."""

from __future__ import annotations

import logging

from authbridge.core.config import AppSettings
from authbridge.core.exceptions import ConfigurationError
from authbridge.core.protocols import IFlowStore
from authbridge.persistence.memory_backend import MemoryFlowStore
from authbridge.persistence.redis_backend import RedisFlowStore

logger = logging.getLogger(__name__)


def create_flow_store(settings: AppSettings | None = None) -> IFlowStore:
    """Create the flow store selected by ``settings.store.driver``."""
    if settings is None:
        settings = AppSettings()

    store_config = settings.store
    if store_config.driver == "memory":
        logger.warning("Using in-memory flow store. Use the redis driver for multi-instance deployments.")
        return MemoryFlowStore(ttl_seconds=store_config.flow_ttl_seconds)

    if not store_config.redis_url:
        raise ConfigurationError("redis_url is required when the store driver is 'redis'")

    return RedisFlowStore(
        url=store_config.redis_url,
        ttl_seconds=store_config.flow_ttl_seconds,
        key_prefix=store_config.key_prefix,
    )


__all__ = ["MemoryFlowStore", "RedisFlowStore", "create_flow_store"]
