"""
Fallback ladder for writes the host store rejects for lack of space.

RAW_WRITE -> REOPTIMIZE -> EVICT -> FAILED, one step per rejected attempt.
Each remediation persists its own (smaller) collection first; the pending
mutation is then re-applied to what is stored and written again.
"""
from __future__ import annotations

from enum import Enum
from typing import Callable

from cardvault.domain.errors import QuotaExceeded
from cardvault.domain.records import StudentRecord, parse_collection, serialize_collection
from cardvault.repositories.host_store import HostStore
from cardvault.services.usage_service import UsageAccountant

Mutation = Callable[[list[StudentRecord]], list[StudentRecord]]


class WriteTier(Enum):
    RAW_WRITE = "raw_write"
    REOPTIMIZE = "reoptimize"
    EVICT = "evict"
    FAILED = "failed"

    def escalate(self) -> "WriteTier":
        if self is WriteTier.FAILED:
            raise ValueError("FAILED is terminal")
        order = list(WriteTier)
        return order[order.index(self) + 1]


class DegradationController:
    def __init__(
        self,
        host: HostStore,
        collection_key: str,
        accountant: UsageAccountant,
        *,
        reoptimize: Callable[[], object],
        evict: Callable[[], object],
    ) -> None:
        self.host = host
        self.collection_key = collection_key
        self.accountant = accountant
        self._remediations = {WriteTier.REOPTIMIZE: reoptimize, WriteTier.EVICT: evict}
        self.trace: list[WriteTier] = []

    def write(self, mutate: Mutation) -> WriteTier:
        """Apply `mutate` to the stored collection and persist it; return the tier that succeeded."""
        before = self.host.get(self.collection_key)
        tier = WriteTier.RAW_WRITE
        self.trace = [tier]
        while True:
            records = mutate(parse_collection(self.host.get(self.collection_key)).records)
            try:
                self.host.set(self.collection_key, serialize_collection(records))
                return tier
            except Exception as exc:
                if not self.host.is_capacity_error(exc):
                    raise
                tier = tier.escalate()
                self.trace.append(tier)
                if tier is WriteTier.FAILED:
                    self._restore(before)
                    percentage = self.accountant.snapshot().percentage_used
                    print(f"[quota] All tiers exhausted ({percentage}% used); write abandoned.")
                    raise QuotaExceeded(percentage) from exc
                print(f"[quota] Write rejected ({exc}); trying {tier.value}.")
                self._remediate(tier)

    def _remediate(self, tier: WriteTier) -> None:
        try:
            outcome = self._remediations[tier]()
        except Exception as exc:
            if not self.host.is_capacity_error(exc):
                raise
            print(f"[quota] {tier.value} could not persist ({exc}).")
            return
        print(f"[quota] {tier.value} done: {outcome}")

    def _restore(self, before: str | None) -> None:
        if self.host.get(self.collection_key) == before:
            return
        try:
            if before is None:
                self.host.remove(self.collection_key)
            else:
                self.host.set(self.collection_key, before)
        except Exception as exc:
            if not self.host.is_capacity_error(exc):
                raise
            print(f"[quota] Could not restore previous collection ({exc}).")
