"""Storage usage accounting against the shared capacity ceiling."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from cardvault.repositories.host_store import HostStore, entry_size

WARNING_PERCENT = 70
CRITICAL_PERCENT = 90


class StorageStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


def status_for(percentage: int) -> StorageStatus:
    if percentage >= CRITICAL_PERCENT:
        return StorageStatus.CRITICAL
    if percentage >= WARNING_PERCENT:
        return StorageStatus.WARNING
    return StorageStatus.OK


@dataclass(frozen=True)
class UsageSnapshot:
    used_size: int
    available_size: int
    percentage_used: int
    record_count: int = 0

    @property
    def status(self) -> StorageStatus:
        return status_for(self.percentage_used)

    @property
    def used_kb(self) -> int:
        return round(self.used_size / 1024)

    @property
    def available_kb(self) -> int:
        return round(self.available_size / 1024)

    def as_dict(self) -> dict:
        return {
            "record_count": self.record_count,
            "used_size": self.used_size,
            "available_size": self.available_size,
            "percentage_used": self.percentage_used,
            "used_kb": self.used_kb,
            "available_kb": self.available_kb,
            "status": self.status.value,
        }


class UsageAccountant:
    """
    Sums every key the host store can enumerate, not only ours: other
    subsystems (sessions, settings) eat the same quota. Never cached.
    """

    def __init__(self, host: HostStore, capacity: int) -> None:
        self.host = host
        self.capacity = capacity

    def used(self) -> int:
        total = 0
        for key in self.host.keys():
            total += entry_size(key, self.host.get(key))
        return total

    def snapshot(self, record_count: int = 0) -> UsageSnapshot:
        used = self.used()
        if self.capacity > 0:
            percentage = int(math.floor(100 * used / self.capacity + 0.5))
        else:
            percentage = 100
        return UsageSnapshot(
            used_size=used,
            available_size=max(self.capacity - used, 0),
            percentage_used=percentage,
            record_count=record_count,
        )
