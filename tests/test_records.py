"""Unit tests for person records and record stores."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from person_finder.core.errors import PersistenceError
from person_finder.storage.records import (
    Feedback,
    InMemoryRecordStore,
    JsonRecordStore,
    PersonRecord,
    RecordQuery,
)


@pytest.fixture
def store():
    """Create an in-memory store."""
    return InMemoryRecordStore()


@pytest.fixture
def sample_record():
    """Create a fully populated record."""
    return PersonRecord(
        name="Asha Rao",
        age=9,
        last_seen=datetime(2024, 3, 1, 18, 30, tzinfo=timezone.utc),
        details="Red school uniform",
        phone_number="+91 98450 00000",
        picture="1709300000000-abcd1234.jpg",
        state="Kerala",
        city="Kochi",
        address="MG Road",
        police_station="Central",
        fir_date=datetime(2024, 3, 2, tzinfo=timezone.utc),
        fir_case_number="FIR-112/2024",
        officer_in_charge_number="+91 98450 11111",
        feedback=[Feedback(text="Seen near the bus stand")],
    )


def test_record_dict_roundtrip(sample_record):
    """Test that to_dict/from_dict preserve every field."""
    sample_record.id = "abc"

    data = sample_record.to_dict()
    restored = PersonRecord.from_dict(json.loads(json.dumps(data)))

    assert restored == sample_record
    assert data["last_seen"] == "2024-03-01T18:30:00+00:00"


def test_from_dict_ignores_unknown_keys():
    """Test unknown keys are dropped and string ages parsed."""
    record = PersonRecord.from_dict({"name": "Ravi", "age": "12", "_v": 0})

    assert record.name == "Ravi"
    assert record.age == 12
    assert record.is_found is False


def test_create_assigns_id(store, sample_record):
    """Test create() generates an id and stores a copy."""
    record_id = store.create(sample_record)

    assert record_id == sample_record.id
    stored = store.find_by_id(record_id)
    assert stored == sample_record
    assert stored is not sample_record


def test_create_duplicate_id(store):
    """Test that ids are unique."""
    store.create(PersonRecord(name="A", id="same"))

    with pytest.raises(PersistenceError):
        store.create(PersonRecord(name="B", id="same"))


def test_find_keeps_insertion_order(store):
    """Test that find() returns records in insertion order."""
    for name in ("C", "A", "B"):
        store.create(PersonRecord(name=name))

    assert [r.name for r in store.find()] == ["C", "A", "B"]


def test_returned_records_are_copies(store):
    """Test mutating a returned record does not change the store."""
    record_id = store.create(PersonRecord(name="Asha"))

    store.find_by_id(record_id).name = "Changed"

    assert store.find_by_id(record_id).name == "Asha"


def test_query_filters(store):
    """Test RecordQuery field filters."""
    store.create(PersonRecord(name="Asha Rao", age=9, state="Kerala", city="Kochi", picture="a.jpg"))
    store.create(PersonRecord(name="Ravi Rao", age=12, state="Kerala", city="Thrissur"))
    store.create(PersonRecord(name="Meena", age=9, state="Goa", city="Panaji", is_found=True))

    assert [r.name for r in store.find(RecordQuery(name="rao"))] == ["Asha Rao", "Ravi Rao"]
    assert [r.name for r in store.find(RecordQuery(age=9))] == ["Asha Rao", "Meena"]
    assert [r.name for r in store.find(RecordQuery(state="Kerala", city="Thrissur"))] == ["Ravi Rao"]
    assert [r.name for r in store.find(RecordQuery(is_found=True))] == ["Meena"]
    assert [r.name for r in store.find(RecordQuery(has_image=True))] == ["Asha Rao"]
    assert store.count(RecordQuery(is_found=False)) == 2


def test_query_name_regex(store):
    """Test names match as regex, and invalid patterns literally."""
    store.create(PersonRecord(name="Asha Rao"))
    store.create(PersonRecord(name="Ravi (Junior)"))

    assert [r.name for r in store.find(RecordQuery(name="^a.*o$"))] == ["Asha Rao"]
    assert [r.name for r in store.find(RecordQuery(name="(junior"))] == ["Ravi (Junior)"]


def test_save_updates(store):
    """Test save() replaces the stored record and bumps updated_at."""
    record_id = store.create(PersonRecord(name="Asha"))
    record = store.find_by_id(record_id)
    before = record.updated_at

    record.is_found = True
    store.save(record)

    stored = store.find_by_id(record_id)
    assert stored.is_found
    assert stored.updated_at >= before


def test_save_unknown(store):
    """Test saving a record the store never created."""
    with pytest.raises(PersistenceError):
        store.save(PersonRecord(name="Ghost", id="missing"))

    with pytest.raises(PersistenceError):
        store.save(PersonRecord(name="No id"))


def test_delete(store):
    """Test delete() reports whether a record existed."""
    record_id = store.create(PersonRecord(name="Asha"))

    assert store.delete(record_id)
    assert not store.delete(record_id)
    assert store.find_by_id(record_id) is None
    assert len(store) == 0


def test_json_store_persists(tmp_path, sample_record):
    """Test records survive reopening the JSON store."""
    path = tmp_path / "persons.json"
    store = JsonRecordStore(path)
    first_id = store.create(sample_record)
    second_id = store.create(PersonRecord(name="Ravi"))
    store.delete(second_id)

    reopened = JsonRecordStore(path)

    assert [r.id for r in reopened.find()] == [first_id]
    assert reopened.find_by_id(first_id) == store.find_by_id(first_id)


def test_json_store_corrupt_file(tmp_path):
    """Test an unreadable records file raises PersistenceError."""
    path = tmp_path / "persons.json"
    path.write_text("{not json")

    with pytest.raises(PersistenceError):
        JsonRecordStore(path)


def test_json_store_rolls_back_on_write_failure(tmp_path, monkeypatch):
    """Test a failed write leaves the in-memory state unchanged."""
    store = JsonRecordStore(tmp_path / "persons.json")
    store.create(PersonRecord(name="Asha"))

    def failing_persist():
        raise PersistenceError("disk full")

    monkeypatch.setattr(store, "_persist", failing_persist)

    with pytest.raises(PersistenceError):
        store.create(PersonRecord(name="Ravi"))

    assert [r.name for r in store.find()] == ["Asha"]


def test_failed_delete_keeps_store_order(tmp_path, monkeypatch):
    """Test a failed delete restores the record in its original position."""
    path = tmp_path / "persons.json"
    store = JsonRecordStore(path)
    first_id = store.create(PersonRecord(name="R1"))
    store.create(PersonRecord(name="R2"))
    store.create(PersonRecord(name="R3"))
    durable_persist = store._persist

    def failing_persist():
        raise PersistenceError("disk full")

    monkeypatch.setattr(store, "_persist", failing_persist)

    with pytest.raises(PersistenceError):
        store.delete(first_id)

    assert [r.name for r in store.find()] == ["R1", "R2", "R3"]

    monkeypatch.setattr(store, "_persist", durable_persist)
    store.create(PersonRecord(name="R4"))

    assert [r.name for r in JsonRecordStore(path).find()] == ["R1", "R2", "R3", "R4"]


def test_failed_save_leaves_record_untouched(tmp_path, monkeypatch):
    """Test a failed save changes neither the stored record nor the caller's copy."""
    store = JsonRecordStore(tmp_path / "persons.json")
    store.create(PersonRecord(name="R1"))
    record_id = store.create(PersonRecord(name="R2"))
    store.create(PersonRecord(name="R3"))

    record = store.find_by_id(record_id)
    original_updated_at = record.updated_at
    record.is_found = True

    def failing_persist():
        raise PersistenceError("disk full")

    monkeypatch.setattr(store, "_persist", failing_persist)

    with pytest.raises(PersistenceError):
        store.save(record)

    assert record.updated_at == original_updated_at
    assert [r.name for r in store.find()] == ["R1", "R2", "R3"]
    stored = store.find_by_id(record_id)
    assert not stored.is_found
    assert stored.updated_at == original_updated_at


def test_save_sets_updated_at(store, sample_record):
    """Test a committed save stamps the caller's record and the stored copy alike."""
    record_id = store.create(sample_record)
    record = store.find_by_id(record_id)
    before = record.updated_at

    store.save(record)

    assert record.updated_at >= before
    assert store.find_by_id(record_id).updated_at == record.updated_at
