"""Host store backed by a SQLAlchemy key/value table."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import OperationalError

from cardvault.db.models import KVEntry
from cardvault.db.session import get_session

from .host_store import StorageFullError, entry_size

_CAPACITY_MARKERS = (
    "database or disk is full",
    "disk full",
    "no space left",
    "quota",
)


class SQLHostStore:
    """Flat namespace in kv_entries; each set replaces one row in one commit."""

    def __init__(self, capacity: Optional[int] = None) -> None:
        self.capacity = capacity

    def get(self, key: str) -> Optional[str]:
        with get_session() as session:
            entry = session.get(KVEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with get_session() as session:
            if self.capacity is not None:
                stmt = select(
                    func.coalesce(func.sum(func.length(KVEntry.key) + func.length(KVEntry.value)), 0)
                ).where(KVEntry.key != key)
                used = int(session.execute(stmt).scalar_one())
                projected = used + entry_size(key, value)
                if projected > self.capacity:
                    raise StorageFullError(key, projected, self.capacity)
            entry = session.get(KVEntry, key)
            if entry:
                entry.value = value
            else:
                session.add(KVEntry(key=key, value=value))
            session.commit()

    def remove(self, key: str) -> None:
        with get_session() as session:
            session.execute(delete(KVEntry).where(KVEntry.key == key))
            session.commit()

    def keys(self) -> list[str]:
        with get_session() as session:
            return list(session.execute(select(KVEntry.key).order_by(KVEntry.key)).scalars().all())

    def is_capacity_error(self, exc: BaseException) -> bool:
        if isinstance(exc, StorageFullError):
            return True
        if isinstance(exc, OperationalError):
            message = str(exc.orig or exc).lower()
            return any(marker in message for marker in _CAPACITY_MARKERS)
        return False
