"""
HostStore capability: a flat, shared, size-bounded key/value namespace.

Every adapter replaces a key's value in one shot (no partial writes) and
rejects a write that would push the namespace over its capacity before
touching anything.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


class StorageFullError(Exception):
    """Raised by adapters when a write would exceed the capacity ceiling."""

    def __init__(self, key: str, projected: int, capacity: int):
        super().__init__(f"writing '{key}' needs {projected} of {capacity} units")
        self.key = key
        self.projected = projected
        self.capacity = capacity


def entry_size(key: str, value: str | None) -> int:
    """Units one entry consumes (characters of key plus value)."""
    return len(key) + len(value or "")


@runtime_checkable
class HostStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...

    def is_capacity_error(self, exc: BaseException) -> bool: ...


class MemoryHostStore:
    """Dict-backed host store; capacity=None means unbounded."""

    def __init__(self, capacity: int | None = None, initial: dict[str, str] | None = None) -> None:
        self.capacity = capacity
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.capacity is not None:
            current = self._data.get(key)
            used = sum(entry_size(k, v) for k, v in self._data.items())
            if current is not None:
                used -= entry_size(key, current)
            projected = used + entry_size(key, value)
            if projected > self.capacity:
                raise StorageFullError(key, projected, self.capacity)
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)

    def is_capacity_error(self, exc: BaseException) -> bool:
        return isinstance(exc, StorageFullError)
