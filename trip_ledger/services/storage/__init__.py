"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Trips are kept as JSON files by default, in memory for tests.
"""

from trip_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    TripStorageInterface,
)
from trip_ledger.services.storage.json_file import (
    JsonFileTripStorage,
    JsonLinesAuditStorage,
)
from trip_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryTripStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TripStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryTripStorage",
    "JsonFileTripStorage",
    "JsonLinesAuditStorage",
]
