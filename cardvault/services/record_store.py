"""
Student record store over a quota-bounded host store.

The whole collection is one JSON blob under one key: every mutation reads
it, changes it in memory and writes it back in a single set(). Writes go
through the DegradationController, which recompresses and then evicts
photos when the host store runs out of room.

Concurrency: an RLock serializes read-modify-write sequences issued through
this instance. Anything else writing the same key (another process, another
RecordStore on the same host store) can still race with us and a lost
update is possible; the host store offers no transaction to prevent it.
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from cardvault.core.config import Settings, get_settings
from cardvault.domain.errors import ClearIncomplete, QuotaExceeded
from cardvault.domain.records import (
    IMMUTABLE_FIELDS,
    OPTIONAL_FIELDS,
    QR_POSITIONS,
    EmptyCollection,
    CollectionState,
    StudentRecord,
    editable_fields,
    parse_collection,
    serialize_collection,
    utc_now,
)
from cardvault.repositories.host_store import HostStore
from cardvault.services.degradation import DegradationController, WriteTier
from cardvault.services.eviction import EvictionResult, evict_photos
from cardvault.services.image_compressor import CompressionProfile, ImageCompressor
from cardvault.services.usage_service import UsageAccountant, UsageSnapshot

CLEAR_ATTEMPTS = 3


@dataclass(frozen=True)
class OptimizeResult:
    freed_size: int
    new_size: int

    @property
    def freed_kb(self) -> int:
        return round(self.freed_size / 1024)

    @property
    def new_size_kb(self) -> int:
        return round(self.new_size / 1024)


class RecordStore:
    """CRUD over the serialized student collection."""

    def __init__(
        self,
        host: HostStore,
        settings: Optional[Settings] = None,
        compressor: Optional[ImageCompressor] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.host = host
        self.collection_key = self.settings.collection_key
        self.compressor = compressor or ImageCompressor()
        self.write_profile = CompressionProfile(self.settings.photo_max_dimension, self.settings.photo_quality)
        self.optimize_profile = CompressionProfile(
            self.settings.optimize_max_dimension, self.settings.optimize_quality
        )
        if not self.optimize_profile.is_more_aggressive_than(self.write_profile):
            raise ValueError("optimize profile must be more aggressive than the write profile")
        self.accountant = UsageAccountant(host, self.settings.storage_capacity)
        self.controller = DegradationController(
            host,
            self.collection_key,
            self.accountant,
            reoptimize=self._reoptimize,
            evict=lambda: self._evict(self.settings.evict_keep_last),
        )
        self.last_write_tier: Optional[WriteTier] = None
        self._lock = threading.RLock()

    # -------------------------- reads --------------------------
    def _load(self) -> CollectionState:
        state = parse_collection(self.host.get(self.collection_key))
        if isinstance(state, EmptyCollection) and state.reason != "absent":
            print(f"[store] Stored collection unreadable ({state.reason}); treating as empty.")
        return state

    def get_all(self) -> list[StudentRecord]:
        return list(self._load().records)

    def get_by_id(self, record_id: str) -> Optional[StudentRecord]:
        return next((r for r in self.get_all() if r.id == record_id), None)

    def get_by_qr_code(self, code: str) -> Optional[StudentRecord]:
        return next((r for r in self.get_all() if r.qr_code_data == code or r.id == code), None)

    def storage_info(self) -> UsageSnapshot:
        return self.accountant.snapshot(record_count=len(self.get_all()))

    # -------------------------- mutations --------------------------
    def add(self, fields: Mapping[str, Any], photo: Optional[str] = None) -> StudentRecord:
        values = self._clean_fields(fields)
        supplied = values.pop("photo", "")
        if photo is None:
            photo = supplied
        record_id = str(uuid.uuid4())
        record = StudentRecord(
            id=record_id,
            photo=self._compress(photo) if photo else "",
            date_creation=utc_now(),
            qr_code_data=record_id,
            **values,
        )
        with self._lock:
            self._sweep(self.settings.ephemeral_prefixes)
            self._commit(lambda records: records + [record])
        return record

    def update(self, record_id: str, partial: Mapping[str, Any]) -> Optional[StudentRecord]:
        changes = self._clean_fields(partial)
        if changes.get("photo"):
            changes["photo"] = self._compress(changes["photo"])
        with self._lock:
            current = self.get_by_id(record_id)
            if current is None:
                return None
            if not changes:
                return current
            updated: dict[str, StudentRecord] = {}

            def mutate(records: list[StudentRecord]) -> list[StudentRecord]:
                out = []
                for record in records:
                    if record.id == record_id:
                        record = replace(record, **changes)
                        updated["record"] = record
                    out.append(record)
                return out

            self._commit(mutate)
            return updated.get("record")

    def delete(self, record_id: str) -> None:
        with self._lock:
            if not any(r.id == record_id for r in self.get_all()):
                return
            self._commit(lambda records: [r for r in records if r.id != record_id])

    def clear_all(self) -> int:
        """Drop the collection and every reserved-prefix key; returns how many keys went away."""
        removed: set[str] = set()
        with self._lock:
            remaining = self._reserved_keys()
            for _attempt in range(CLEAR_ATTEMPTS):
                for key in remaining:
                    self.host.remove(key)
                after = self._reserved_keys()
                removed.update(k for k in remaining if k not in after)
                remaining = after
                if not remaining:
                    break
        if remaining:
            print(f"[store] Clear incomplete after {CLEAR_ATTEMPTS} attempts; still present: {', '.join(remaining)}")
            raise ClearIncomplete(remaining, len(removed))
        print(f"[store] Storage cleared ({len(removed)} keys removed).")
        return len(removed)

    def _reserved_keys(self) -> list[str]:
        prefixes = tuple(self.settings.reserved_prefixes)
        return [k for k in self.host.keys() if k == self.collection_key or k.startswith(prefixes)]

    # -------------------------- maintenance --------------------------
    def optimize_storage(self) -> OptimizeResult:
        with self._lock:
            try:
                return self._reoptimize()
            except Exception as exc:
                if not self.host.is_capacity_error(exc):
                    raise
                raise QuotaExceeded(self.accountant.snapshot().percentage_used) from exc

    def evict_photos_keeping_last(self, keep_last: Optional[int] = None) -> EvictionResult:
        if keep_last is None:
            keep_last = self.settings.evict_keep_last
        with self._lock:
            try:
                return self._evict(keep_last)
            except Exception as exc:
                if not self.host.is_capacity_error(exc):
                    raise
                raise QuotaExceeded(self.accountant.snapshot().percentage_used) from exc

    def _reoptimize(self) -> OptimizeResult:
        old_raw = self.host.get(self.collection_key) or ""
        records = self._load().records
        changed = False
        optimized = []
        for record in records:
            if record.photo and len(record.photo) >= self.settings.optimize_min_photo_length:
                smaller = self.compressor.compress(
                    record.photo, self.optimize_profile.max_dimension, self.optimize_profile.quality
                )
                if len(smaller) < len(record.photo):
                    record = replace(record, photo=smaller)
                    changed = True
            optimized.append(record)
        if not changed:
            return OptimizeResult(freed_size=0, new_size=len(old_raw))
        new_raw = serialize_collection(optimized)
        self.host.set(self.collection_key, new_raw)
        return OptimizeResult(freed_size=len(old_raw) - len(new_raw), new_size=len(new_raw))

    def _evict(self, keep_last: int) -> EvictionResult:
        records = self._load().records
        updated, removed = evict_photos(records, keep_last)
        if removed:
            self.host.set(self.collection_key, serialize_collection(updated))
            print(f"[store] Removed {removed} photos, kept the {keep_last} most recent.")
        return EvictionResult(removed_count=removed)

    # -------------------------- helpers --------------------------
    def _commit(self, mutate) -> None:
        self.last_write_tier = self.controller.write(mutate)

    def _compress(self, photo: str) -> str:
        return self.compressor.compress(photo, self.write_profile.max_dimension, self.write_profile.quality)

    def _sweep(self, prefixes: tuple[str, ...]) -> None:
        if not prefixes:
            return
        for key in self.host.keys():
            if key != self.collection_key and key.startswith(prefixes):
                self.host.remove(key)

    def _clean_fields(self, fields: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        allowed = set(editable_fields())
        clean: dict[str, Any] = {}
        ignored = []
        for name, value in (fields or {}).items():
            if name in IMMUTABLE_FIELDS:
                continue
            if name not in allowed:
                ignored.append(name)
                continue
            if name == "qr_position" and value is not None and (not isinstance(value, str) or value not in QR_POSITIONS):
                ignored.append(name)
                continue
            if value is None:
                value = None if name in OPTIONAL_FIELDS else ""
            elif not isinstance(value, str):
                value = str(value)
            clean[name] = value
        if ignored:
            print(f"[store] Ignoring fields: {', '.join(sorted(ignored))}")
        return clean
