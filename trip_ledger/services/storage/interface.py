"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep trips in JSON files on disk today, a database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

Trips are stored whole, keyed by trip id. There is no partial update:
flows load a trip, build a new one and save it.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from trip_ledger.models.audit import AuditEvent
from trip_ledger.models.ledger import Trip


class TripStorageInterface(ABC):
    """
    Abstract interface for trip storage operations.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def save_trip(self, trip: Trip) -> bool:
        """
        Save a trip, replacing any stored trip with the same id.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_trip(self, trip_id: str) -> Optional[Trip]:
        """
        Retrieve a trip by its id.

        Returns:
            The trip if found, None otherwise
        """
        pass

    @abstractmethod
    async def delete_trip(self, trip_id: str) -> bool:
        """
        Delete a trip by id.

        Returns:
            True if a trip was deleted, False if none existed
        """
        pass

    @abstractmethod
    async def list_trips(self) -> list[Trip]:
        """
        List all stored trips, oldest first.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one settle-up run),
        in chronological order.
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, newest first.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
