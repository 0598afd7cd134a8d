"""Services package."""

from trip_ledger.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryTripStorage,
    JsonFileTripStorage,
    JsonLinesAuditStorage,
    NotFoundError,
    StorageError,
    TripStorageInterface,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryTripStorage",
    "JsonFileTripStorage",
    "JsonLinesAuditStorage",
    "NotFoundError",
    "StorageError",
    "TripStorageInterface",
]
