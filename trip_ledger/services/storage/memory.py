"""
In-Memory Storage Implementation

Used by tests and as the fallback when no data directory is configured.
Nothing survives a restart.
"""

from typing import Optional
from uuid import UUID

from trip_ledger.models.audit import AuditEvent
from trip_ledger.models.ledger import Trip
from trip_ledger.services.storage.interface import (
    AuditStorageInterface,
    TripStorageInterface,
)


class InMemoryTripStorage(TripStorageInterface):
    """Trips held in a dict keyed by trip id."""

    def __init__(self):
        self._trips: dict[str, Trip] = {}

    async def save_trip(self, trip: Trip) -> bool:
        self._trips[trip.id] = trip
        return True

    async def get_trip(self, trip_id: str) -> Optional[Trip]:
        return self._trips.get(trip_id)

    async def delete_trip(self, trip_id: str) -> bool:
        return self._trips.pop(trip_id, None) is not None

    async def list_trips(self) -> list[Trip]:
        return sorted(self._trips.values(), key=lambda t: t.created_at)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
