"""
Shared store module.
Contains the store Protocol and its Redis and in-memory adapters.
"""

from jobqueue.config import Settings, get_settings
from jobqueue.store.base import StorePort, StoreTransaction
from jobqueue.store.memory import InMemoryStore
from jobqueue.store.redis import RedisStore


def create_store(settings: Settings | None = None) -> StorePort:
    """
    Build the store adapter selected by configuration.

    Args:
        settings: Settings to read; defaults to the cached application settings.

    Returns:
        StorePort: A connected-on-demand store adapter.
    """
    settings = settings or get_settings()

    if settings.store_backend == "memory":
        return InMemoryStore()
    if settings.store_backend == "redis":
        return RedisStore.from_url(
            settings.redis_url,
            socket_timeout=settings.redis_socket_timeout_seconds,
        )
    raise ValueError(f"Unknown store backend: {settings.store_backend!r}")


__all__ = [
    "StorePort",
    "StoreTransaction",
    "InMemoryStore",
    "RedisStore",
    "create_store",
]
