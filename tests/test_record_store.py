"""
Record store behaviour over an in-memory host store: CRUD, quiet not-found,
corruption tolerance, clearing and on-demand optimization.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import (
    COLLECTION_KEY,
    LaggingRemoveHostStore,
    RejectingHostStore,
    make_photo,
    make_settings,
    photo_size,
)

from cardvault.domain.errors import ClearIncomplete, QuotaExceeded
from cardvault.domain.records import serialize_collection, StudentRecord
from cardvault.repositories.host_store import MemoryHostStore
from cardvault.services.degradation import WriteTier
from cardvault.services.record_store import RecordStore


def _fields(i: int = 0) -> dict:
    return {
        "nom": f"Nom{i}",
        "prenom": f"Prenom{i}",
        "faculte": "Sciences",
        "promotion": "L2",
        "annee_academique": "2024-2025",
        "date_expiration": "2025-09-30",
    }


@pytest.fixture()
def store(host, settings) -> RecordStore:
    return RecordStore(host, settings=settings)


def test_empty_store_reads_as_empty(store):
    assert store.get_all() == []
    assert store.get_by_id("nope") is None
    assert store.storage_info().record_count == 0


def test_add_assigns_identity_and_persists(store, host):
    record = store.add(_fields(1))

    assert record.id
    assert record.qr_code_data == record.id
    assert record.date_creation.tzinfo is not None
    assert host.get(COLLECTION_KEY) is not None
    assert store.get_by_id(record.id) == record
    assert store.last_write_tier is WriteTier.RAW_WRITE


def test_ids_are_unique(store):
    ids = [store.add(_fields(i)).id for i in range(40)]
    assert len(set(ids)) == 40
    assert [r.id for r in store.get_all()] == ids


def test_add_with_large_photo_is_compressed_to_first_tier(store):
    record = store.add(_fields(), photo=make_photo(4000, 3000))

    stored = store.get_by_id(record.id)
    assert stored is not None
    assert stored.id == record.id
    assert max(photo_size(stored.photo)) <= 150


def test_photo_inside_fields_is_also_compressed(store):
    record = store.add({**_fields(), "photo": make_photo(600, 900)})
    assert max(photo_size(record.photo)) <= 150


def test_non_image_photo_is_stored_verbatim(store):
    record = store.add(_fields(), photo="placeholder")
    assert store.get_by_id(record.id).photo == "placeholder"


def test_update_never_changes_identity(store):
    record = store.add(_fields())
    updated = store.update(
        record.id,
        {
            "nom": "X",
            "id": "hijack",
            "date_creation": "1999-01-01T00:00:00+00:00",
            "qr_code_data": "other",
        },
    )

    assert updated is not None
    assert updated.nom == "X"
    assert updated.prenom == record.prenom
    assert (updated.id, updated.date_creation, updated.qr_code_data) == (
        record.id,
        record.date_creation,
        record.qr_code_data,
    )
    assert store.get_by_id(record.id) == updated


def test_update_recompresses_new_photo(store):
    record = store.add(_fields())
    updated = store.update(record.id, {"photo": make_photo(1200, 800)})
    assert max(photo_size(updated.photo)) <= 150


def test_update_unknown_id_is_quiet(store, host):
    store.add(_fields())
    before = host.get(COLLECTION_KEY)

    assert store.update("nonexistent", {"nom": "X"}) is None
    assert host.get(COLLECTION_KEY) == before


def test_update_ignores_unknown_fields(store):
    record = store.add(_fields())
    updated = store.update(record.id, {"shoe_size": "44", "qr_position": "sideways", "prenom": "Y"})
    assert updated.prenom == "Y"
    assert updated.qr_position is None


def test_delete_is_idempotent(store, host):
    keep = store.add(_fields(1))
    gone = store.add(_fields(2))

    store.delete(gone.id)
    before = host.get(COLLECTION_KEY)
    store.delete(gone.id)
    store.delete("nonexistent")

    assert host.get(COLLECTION_KEY) == before
    assert [r.id for r in store.get_all()] == [keep.id]


def test_get_by_qr_code_matches_qr_data_or_id(store):
    record = store.add(_fields())
    assert store.get_by_qr_code(record.qr_code_data) == record
    assert store.get_by_qr_code(record.id) == record
    assert store.get_by_qr_code("unknown") is None


@pytest.mark.parametrize(
    "blob",
    [
        "{not json",
        '{"a": 1}',
        '[{"nom": "no id"}]',
        '[{"id": "x", "date_creation": "soon"}]',
        '[{"id": "a", "photo": 12345, "date_creation": "2024-01-01T00:00:00+00:00"}]',
        '[{"id": "a", "nom": ["Doe"], "date_creation": "2024-01-01T00:00:00+00:00"}]',
    ],
)
def test_corrupt_blob_reads_as_empty(blob, settings):
    host = MemoryHostStore(initial={COLLECTION_KEY: blob})
    store = RecordStore(host, settings=settings)

    assert store.get_all() == []
    record = store.add(_fields())
    assert [r.id for r in store.get_all()] == [record.id]


def test_non_text_photo_in_blob_does_not_break_maintenance_or_ladder(settings):
    blob = '[{"id": "a", "photo": 12345, "date_creation": "2024-01-01T00:00:00+00:00"}]'
    host = RejectingHostStore()
    host.set(COLLECTION_KEY, blob)
    store = RecordStore(host, settings=settings)

    assert store.optimize_storage().freed_size == 0
    assert store.evict_photos_keeping_last(0).removed_count == 0

    host.limit = 10
    with pytest.raises(QuotaExceeded):
        store.add({"nom": "X"})
    assert host.get(COLLECTION_KEY) == blob


def test_null_optional_fields_are_accepted(settings):
    raw = (
        '[{"id": "abc", "nom": "Doe", "photo": null, "custom_qr_code": null,'
        ' "institution_id": null, "qr_position": null, "date_creation": "2024-03-01T10:00:00.000Z"}]'
    )
    store = RecordStore(MemoryHostStore(initial={COLLECTION_KEY: raw}), settings=settings)
    (record,) = store.get_all()
    assert record.photo == ""
    assert record.institution_id is None


def test_add_stores_non_text_input_as_text(store):
    record = store.add({"nom": 42, "promotion": None, "institution_id": None})

    assert record.nom == "42"
    assert record.promotion == ""
    assert store.get_by_id(record.id) == record


def test_legacy_zulu_timestamps_are_accepted(settings):
    raw = '[{"id": "abc", "nom": "Doe", "date_creation": "2024-03-01T10:00:00.000Z"}]'
    store = RecordStore(MemoryHostStore(initial={COLLECTION_KEY: raw}), settings=settings)
    (record,) = store.get_all()
    assert record.date_creation == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
    assert record.qr_code_data == "abc"
    assert record.photo == ""


def test_add_sweeps_ephemeral_keys(store, host):
    host.set("temp_upload", "x")
    host.set("draft_form", "y")
    host.set("cache_qr", "z")
    host.set("ises_institutions", "[]")
    host.set("session", "token")

    store.add(_fields())

    assert sorted(host.keys()) == sorted([COLLECTION_KEY, "ises_institutions", "session"])


def test_clear_all_empties_collection_and_reserved_keys(store, host):
    for i in range(3):
        store.add(_fields(i))
    host.set("temp_a", "1")
    host.set("ises_templates", "[]")
    host.set("session", "token")

    removed = store.clear_all()

    assert removed == 3
    assert store.get_all() == []
    assert host.keys() == ["session"]
    assert store.clear_all() == 0
    assert store.get_all() == []


def test_clear_all_retries_until_keys_are_gone(settings):
    host = LaggingRemoveHostStore(lag=2)
    store = RecordStore(host, settings=settings)
    store.add(_fields())
    host.set("temp_a", "1")

    assert store.clear_all() == 2
    assert store.get_all() == []
    assert host.keys() == []
    assert host.remove_calls == {COLLECTION_KEY: 2, "temp_a": 2}


def test_clear_all_raises_when_keys_survive_every_attempt(settings, capsys):
    host = LaggingRemoveHostStore(lag=8)
    store = RecordStore(host, settings=settings)
    store.add(_fields())

    with pytest.raises(ClearIncomplete) as exc:
        store.clear_all()

    assert exc.value.remaining == [COLLECTION_KEY]
    assert exc.value.removed == 0
    assert len(store.get_all()) == 1
    out = capsys.readouterr().out
    assert "Clear incomplete" in out
    assert "Storage cleared" not in out


def test_storage_info_counts_records(store):
    store.add(_fields(1))
    store.add(_fields(2))
    info = store.storage_info()
    assert info.record_count == 2
    assert info.used_size > 0
    assert info.percentage_used == 0


def test_optimize_storage_frees_space_once(store):
    for i in range(3):
        store.add(_fields(i), photo=make_photo(900, 700, noise=True))

    first = store.optimize_storage()
    second = store.optimize_storage()

    assert first.freed_size > 0
    assert 0 <= second.freed_size < max(first.freed_size // 10, 1)
    for record in store.get_all():
        assert max(photo_size(record.photo)) <= 120


def test_optimize_does_not_rewrite_unreadable_blob(settings):
    host = MemoryHostStore(initial={COLLECTION_KEY: "{broken"})
    result = RecordStore(host, settings=settings).optimize_storage()
    assert result.freed_size == 0
    assert host.get(COLLECTION_KEY) == "{broken"


def test_evict_photos_keeping_last_persists(settings):
    host = MemoryHostStore()
    store = RecordStore(host, settings=settings)
    records = [store.add(_fields(i), photo="placeholder") for i in range(4)]

    result = store.evict_photos_keeping_last(1)

    assert result.removed_count == 3
    photos = {r.id: r.photo for r in store.get_all()}
    assert photos[records[-1].id] == "placeholder"
    assert all(photos[r.id] == "" for r in records[:-1])
    assert store.evict_photos_keeping_last(1).removed_count == 0


def test_optimize_profile_must_be_stricter(host):
    with pytest.raises(ValueError):
        RecordStore(host, settings=make_settings(optimize_max_dimension=200, optimize_quality=0.5))


def test_serialized_records_have_fixed_width_timestamps():
    record = StudentRecord(id="a", date_creation=datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert '"date_creation":"2024-01-01T00:00:00.000+00:00"' in serialize_collection([record])
