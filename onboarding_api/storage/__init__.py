"""
Storage layer for the onboarding dashboard.

Read replicas of the BRD snapshot collection and the BRD audit log, held in
DuckDB. The dashboard engine only depends on the StorageBackend contract.
"""

from functools import lru_cache

from onboarding_api.config import get_settings

from .base import AuditEventCriteria, SnapshotCriteria, StorageBackend, StorageError
from .duckdb_storage import DuckDBStorage


@lru_cache
def get_storage() -> StorageBackend:
    """
    Get cached storage backend instance (singleton).

    Returns:
        StorageBackend implementation instance
    """
    settings = get_settings()
    return DuckDBStorage(db_path=settings.db_path)


__all__ = [
    "AuditEventCriteria",
    "DuckDBStorage",
    "SnapshotCriteria",
    "StorageBackend",
    "StorageError",
    "get_storage",
]
