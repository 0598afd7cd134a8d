"""
Tests for trip and audit storage backends.
"""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from trip_ledger.models.audit import AuditEventBuilder
from trip_ledger.models.ledger import Expense, Member, Trip
from trip_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryTripStorage,
    JsonFileTripStorage,
    JsonLinesAuditStorage,
    StorageError,
)


def sample_trip(trip_id="porto"):
    return Trip(
        id=trip_id,
        name="Porto",
        members=[Member(id="a", name="Alice"), Member(id="b", name="Bob")],
        expenses=[Expense(title="Pastéis", amount=Decimal("6.40"), paid_by="a", split_with=["a", "b"])],
    )


@pytest.fixture(params=["memory", "json"])
def trip_storage(request, tmp_path):
    if request.param == "memory":
        return InMemoryTripStorage()
    return JsonFileTripStorage(tmp_path / "trips")


class TestTripStorage:
    """Behaviour shared by every trip storage backend."""

    def test_save_and_get(self, trip_storage):
        trip = sample_trip()
        assert asyncio.run(trip_storage.save_trip(trip)) is True
        assert asyncio.run(trip_storage.get_trip("porto")) == trip

    def test_get_missing_returns_none(self, trip_storage):
        assert asyncio.run(trip_storage.get_trip("nowhere")) is None

    def test_save_replaces_existing(self, trip_storage):
        trip = sample_trip()
        asyncio.run(trip_storage.save_trip(trip))
        renamed = trip.model_copy(update={"name": "Porto & Lisbon"})
        asyncio.run(trip_storage.save_trip(renamed))
        assert asyncio.run(trip_storage.get_trip("porto")).name == "Porto & Lisbon"

    def test_delete(self, trip_storage):
        asyncio.run(trip_storage.save_trip(sample_trip()))
        assert asyncio.run(trip_storage.delete_trip("porto")) is True
        assert asyncio.run(trip_storage.delete_trip("porto")) is False
        assert asyncio.run(trip_storage.get_trip("porto")) is None

    def test_list_trips(self, trip_storage):
        asyncio.run(trip_storage.save_trip(sample_trip("one")))
        asyncio.run(trip_storage.save_trip(sample_trip("two")))
        trips = asyncio.run(trip_storage.list_trips())
        assert sorted(t.id for t in trips) == ["one", "two"]


class TestJsonFileTripStorage:
    """File-specific behaviour."""

    def test_one_file_per_trip(self, tmp_path):
        storage = JsonFileTripStorage(tmp_path)
        asyncio.run(storage.save_trip(sample_trip()))
        assert (tmp_path / "porto.json").exists()
        assert not (tmp_path / "porto.json.tmp").exists()

    def test_persists_across_instances(self, tmp_path):
        asyncio.run(JsonFileTripStorage(tmp_path).save_trip(sample_trip()))
        loaded = asyncio.run(JsonFileTripStorage(tmp_path).get_trip("porto"))
        assert loaded.expenses[0].amount == Decimal("6.40")

    def test_malformed_file_raises_storage_error(self, tmp_path):
        storage = JsonFileTripStorage(tmp_path)
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError, match="Malformed trip file"):
            asyncio.run(storage.get_trip("broken"))

    def test_invalid_utf8_raises_storage_error(self, tmp_path):
        storage = JsonFileTripStorage(tmp_path)
        (tmp_path / "garbled.json").write_bytes(b'{"name": "\xff\xfe"}')
        with pytest.raises(StorageError, match="Malformed trip file garbled.json"):
            asyncio.run(storage.get_trip("garbled"))
        with pytest.raises(StorageError):
            asyncio.run(storage.list_trips())

    def test_rejects_unsafe_trip_id(self, tmp_path):
        storage = JsonFileTripStorage(tmp_path)
        with pytest.raises(StorageError):
            asyncio.run(storage.get_trip("../etc/passwd"))


@pytest.fixture(params=["memory", "json"])
def audit_storage(request, tmp_path):
    if request.param == "memory":
        return InMemoryAuditStorage()
    return JsonLinesAuditStorage(tmp_path)


class TestAuditStorage:
    """Behaviour shared by every audit storage backend."""

    def test_query_by_correlation_and_entity(self, audit_storage):
        correlation_id = uuid4()
        created = AuditEventBuilder.trip_created("t1", "Porto", correlation_id=correlation_id)
        joined = AuditEventBuilder.member_changed("t1", "a", "Alice", added=True)
        for event in (created, joined):
            assert asyncio.run(audit_storage.append_event(event)) is True

        by_correlation = asyncio.run(audit_storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_id for e in by_correlation] == [created.event_id]

        by_entity = asyncio.run(audit_storage.get_events_by_entity("member", "a"))
        assert [e.event_id for e in by_entity] == [joined.event_id]

    def test_recent_events_newest_first(self, audit_storage):
        events = [AuditEventBuilder.trip_created(f"t{i}", f"Trip {i}") for i in range(3)]
        for event in events:
            asyncio.run(audit_storage.append_event(event))

        recent = asyncio.run(audit_storage.get_recent_events(limit=2))
        assert [e.event_id for e in recent] == [events[2].event_id, events[1].event_id]


class TestJsonLinesAuditStorage:
    """File-specific behaviour of the audit log."""

    def test_malformed_line_raises_storage_error(self, tmp_path):
        storage = JsonLinesAuditStorage(tmp_path)
        asyncio.run(storage.append_event(AuditEventBuilder.trip_created("t1", "Porto")))
        with (tmp_path / "audit.jsonl").open("a", encoding="utf-8") as f:
            f.write('{"event_type": "not_an_event"}\n')

        with pytest.raises(StorageError, match="line 2"):
            asyncio.run(storage.get_recent_events())

    def test_invalid_utf8_raises_storage_error(self, tmp_path):
        storage = JsonLinesAuditStorage(tmp_path)
        (tmp_path / "audit.jsonl").write_bytes(b"\xff\xfe\n")

        with pytest.raises(StorageError, match="Malformed audit log"):
            asyncio.run(storage.get_events_by_entity("trip", "t1"))
