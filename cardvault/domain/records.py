"""Student record model and the collection (de)serializer."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Mapping

# Fields assigned once by RecordStore.add and never rewritten by update.
IMMUTABLE_FIELDS = frozenset({"id", "date_creation", "qr_code_data"})
QR_POSITIONS = {"recto", "verso"}
OPTIONAL_FIELDS = frozenset({"custom_qr_code", "institution_id", "qr_position"})


def utc_now() -> datetime:
    # millisecond precision, same as the serialized form
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def parse_timestamp(value: str) -> datetime:
    text = (value or "").strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class StudentRecord:
    id: str
    nom: str = ""
    prenom: str = ""
    faculte: str = ""
    promotion: str = ""
    annee_academique: str = ""
    date_expiration: str = ""
    photo: str = ""
    date_creation: datetime = field(default_factory=utc_now)
    qr_code_data: str = ""
    custom_qr_code: str | None = None
    institution_id: str | None = None
    qr_position: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date_creation"] = format_timestamp(self.date_creation)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StudentRecord":
        record_id = data.get("id")
        if not isinstance(record_id, str) or not record_id:
            raise ValueError("record without id")
        values = {name: data[name] for name in editable_fields() if name in data}
        values["photo"] = values.get("photo") or ""
        for name, value in values.items():
            if value is None and name in OPTIONAL_FIELDS:
                continue
            if not isinstance(value, str):
                raise ValueError(f"field {name!r} of record {record_id} is not text")
        return cls(
            id=record_id,
            date_creation=parse_timestamp(str(data.get("date_creation") or "")),
            qr_code_data=str(data.get("qr_code_data") or record_id),
            **values,
        )


def editable_fields() -> tuple[str, ...]:
    return tuple(f.name for f in fields(StudentRecord) if f.name not in IMMUTABLE_FIELDS)


@dataclass(frozen=True)
class EmptyCollection:
    """Nothing usable under the collection key (absent or unreadable)."""

    reason: str = "absent"

    @property
    def records(self) -> list[StudentRecord]:
        return []


@dataclass(frozen=True)
class ParsedCollection:
    records: list[StudentRecord]


CollectionState = EmptyCollection | ParsedCollection


def parse_collection(raw: str | None) -> CollectionState:
    """Decode the stored blob; never raises."""
    if raw is None or raw == "":
        return EmptyCollection("absent")
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        return EmptyCollection("invalid json")
    if not isinstance(payload, list):
        return EmptyCollection("not a list")
    try:
        records = [StudentRecord.from_dict(item) for item in payload]
    except (AttributeError, TypeError, ValueError) as exc:
        return EmptyCollection(f"invalid record: {exc}")
    return ParsedCollection(records)


def serialize_collection(records: list[StudentRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], ensure_ascii=False, separators=(",", ":"))
