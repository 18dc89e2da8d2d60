"""
Host store adapters.

Services depend on the HostStore capability (get/set/remove/keys plus a
capacity-error predicate) rather than on a concrete backend, so the same
record store runs over memory, a JSON file or a SQL table.
"""
from __future__ import annotations

from cardvault.core.config import Settings

from .host_store import HostStore, MemoryHostStore, StorageFullError, entry_size
from .json_storage import JsonFileHostStore


def build_host_store(settings: Settings) -> HostStore:
    """Instantiate the backend named by STORAGE_BACKEND."""
    backend = settings.storage_backend
    if backend == "memory":
        return MemoryHostStore(capacity=settings.storage_capacity)
    if backend == "json":
        return JsonFileHostStore(settings.storage_path, capacity=settings.storage_capacity)
    if backend == "sql":
        from .sql_repository import SQLHostStore

        return SQLHostStore(capacity=settings.storage_capacity)
    raise ValueError(f"Unknown STORAGE_BACKEND '{backend}'")


__all__ = [
    "HostStore",
    "JsonFileHostStore",
    "MemoryHostStore",
    "StorageFullError",
    "build_host_store",
    "entry_size",
]
