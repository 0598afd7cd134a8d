"""
JSON File Storage Implementation

DESIGN DECISION: Each trip is one JSON file, `<trip_id>.json`, in a data
directory. This mirrors keeping one saved document per trip and means:
1. Users can back up or share a trip by copying a file
2. No database setup required
3. A corrupt file affects only its own trip

TRADEOFFS:
- Whole-file rewrites on every change (fine for a trip's worth of data)
- No cross-process locking (single user, single app)

Writes go to a temporary file first and are moved into place, so a crash
never leaves a half-written trip. File access is retried on OSError.
"""

import os
import re
from pathlib import Path
from typing import Optional
from uuid import UUID

from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from trip_ledger.models.audit import AuditEvent
from trip_ledger.models.ledger import Trip
from trip_ledger.services.storage.interface import (
    AuditStorageInterface,
    StorageError,
    TripStorageInterface,
)

SAFE_TRIP_ID = re.compile(r"^[A-Za-z0-9_-]+$")

AUDIT_FILENAME = "audit.jsonl"

io_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(OSError),
    reraise=True,
)


@io_retry
def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


@io_retry
def _write_text_atomic(path: Path, text: str) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    os.replace(tmp_path, path)


@io_retry
def _append_line(path: Path, line: str) -> None:
    with path.open("a", encoding="utf-8") as f:
        f.write(line + "\n")


class JsonFileTripStorage(TripStorageInterface):
    """
    Trip storage backed by one JSON file per trip.
    """

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, trip_id: str) -> Path:
        if not SAFE_TRIP_ID.match(trip_id):
            raise StorageError(f"Trip id not usable as a file name: {trip_id!r}")
        return self._data_dir / f"{trip_id}.json"

    def _load(self, path: Path) -> Optional[Trip]:
        try:
            text = _read_text(path)
            if text is None:
                return None
            return Trip.model_validate_json(text)
        except (UnicodeDecodeError, ValidationError) as e:
            raise StorageError(f"Malformed trip file {path.name}: {e}") from e

    async def save_trip(self, trip: Trip) -> bool:
        path = self._path_for(trip.id)
        try:
            _write_text_atomic(path, trip.model_dump_json(indent=2))
        except OSError as e:
            raise StorageError(f"Failed to save trip {trip.id}: {e}") from e
        return True

    async def get_trip(self, trip_id: str) -> Optional[Trip]:
        path = self._path_for(trip_id)
        try:
            return self._load(path)
        except OSError as e:
            raise StorageError(f"Failed to read trip {trip_id}: {e}") from e

    async def delete_trip(self, trip_id: str) -> bool:
        path = self._path_for(trip_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete trip {trip_id}: {e}") from e
        return True

    async def list_trips(self) -> list[Trip]:
        trips = []
        for path in sorted(self._data_dir.glob("*.json")):
            try:
                trip = self._load(path)
            except OSError as e:
                raise StorageError(f"Failed to read {path.name}: {e}") from e
            if trip is not None:
                trips.append(trip)
        return sorted(trips, key=lambda t: t.created_at)


class JsonLinesAuditStorage(AuditStorageInterface):
    """
    Append-only audit log, one JSON event per line.
    """

    def __init__(self, data_dir: Path):
        data_dir = Path(data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        self._path = data_dir / AUDIT_FILENAME

    def _read_events(self) -> list[AuditEvent]:
        try:
            text = _read_text(self._path)
        except UnicodeDecodeError as e:
            raise StorageError(f"Malformed audit log {self._path.name}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read audit log: {e}") from e
        if not text:
            return []
        events = []
        for line_number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                events.append(AuditEvent.model_validate_json(line))
            except ValidationError as e:
                raise StorageError(
                    f"Malformed audit log {self._path.name} line {line_number}: {e}"
                ) from e
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            _append_line(self._path, event.to_json_line())
        except OSError as e:
            raise StorageError(f"Failed to append audit event: {e}") from e
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._read_events() if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._read_events()))[:limit]
