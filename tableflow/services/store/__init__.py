"""
Store Factory

Provides a single entry point for obtaining the persistence collaborator.
The factory pattern allows the managers to remain agnostic about which
backend is being used.

Usage:
    from tableflow.services.store import get_store

    # Returns MemoryStore or SqlStore based on ENV_MODE
    store = get_store()
    table = await store.get_table(tenant_id, table_id)

Environment Switching:
    - ENV_MODE=development → MemoryStore (no database)
    - ENV_MODE=staging → SqlStore (staging database)
    - ENV_MODE=production → SqlStore (production database)
"""

import logging
from functools import lru_cache

from tableflow.core.config import get_settings
from tableflow.services.store.base import UNSET, BaseStore
from tableflow.services.store.memory import MemoryStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_store() -> BaseStore:
    """
    Get the configured store instance.

    The instance is cached so every manager in the process shares it.

    Returns:
        BaseStore: Configured store instance
    """
    settings = get_settings()

    if not settings.use_sql_store:
        logger.info("Store: Using MemoryStore (development mode)")
        return MemoryStore(
            min_latency=settings.store_min_latency,
            max_latency=settings.store_max_latency,
        )

    # Imported lazily so development mode never needs a database driver
    from tableflow.database import create_engine, create_session_maker
    from tableflow.services.store.sql import SqlStore

    logger.info(f"Store: Using SqlStore ({settings.env_mode.value} mode)")
    return SqlStore(create_session_maker(create_engine()))


def reset_store() -> None:
    """
    Clear the cached store instance.

    Useful for testing or when configuration changes at runtime.
    """
    get_store.cache_clear()
    logger.debug("Store cache cleared")


__all__ = [
    "get_store",
    "reset_store",
    "BaseStore",
    "MemoryStore",
    "UNSET",
]
