"""
Repository pattern for data access.

Dispensers and their tap events live behind one repository contract so the
billing engine never touches storage details. An in-memory implementation
backs tests and single-process use; the SQLite one is the durable store.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from .db import DEFAULT_DB_PATH, get_connection, initialize_schema
from .models import Dispenser, TapEvent, TapStatus

logger = logging.getLogger(__name__)


class DispenserRepository(ABC):
    """Storage contract for dispensers and their append-only tap events."""

    @abstractmethod
    def create(self, dispenser: Dispenser) -> Dispenser:
        """Store a new dispenser. Raises ValueError if the id is taken."""

    @abstractmethod
    def get_by_id(self, dispenser_id: str) -> Optional[Dispenser]:
        """Return the dispenser or None when unknown."""

    @abstractmethod
    def list_all(self) -> List[Dispenser]:
        """Return all dispensers in registration order."""

    @abstractmethod
    def append_event(self, event: TapEvent) -> TapEvent:
        """Append an event and return it with its storage id assigned."""

    @abstractmethod
    def update_event(self, event: TapEvent) -> None:
        """Replace a stored event (matched by id). Raises KeyError if unknown."""

    @abstractmethod
    def list_events(self, dispenser_id: str) -> List[TapEvent]:
        """Return the dispenser's events in insertion order."""

    def find_open_event(self, dispenser_id: str) -> Optional[TapEvent]:
        """Return the most recent OPEN event for the dispenser, if any."""
        for event in reversed(self.list_events(dispenser_id)):
            if event.is_open:
                return event
        return None


class InMemoryDispenserRepository(DispenserRepository):
    """Dict-backed repository. Each instance owns its own state."""

    def __init__(self):
        self._lock = threading.RLock()
        self._dispensers: Dict[str, Dispenser] = {}
        self._events: Dict[str, List[TapEvent]] = {}
        self._next_event_id = 1

    def create(self, dispenser: Dispenser) -> Dispenser:
        with self._lock:
            if dispenser.id in self._dispensers:
                raise ValueError(f"Dispenser already exists: {dispenser.id}")
            self._dispensers[dispenser.id] = dispenser
            self._events[dispenser.id] = []
        return dispenser

    def get_by_id(self, dispenser_id: str) -> Optional[Dispenser]:
        with self._lock:
            return self._dispensers.get(dispenser_id)

    def list_all(self) -> List[Dispenser]:
        with self._lock:
            return list(self._dispensers.values())

    def append_event(self, event: TapEvent) -> TapEvent:
        with self._lock:
            if event.dispenser_id not in self._dispensers:
                raise KeyError(f"Unknown dispenser: {event.dispenser_id}")
            stored = replace(event, id=self._next_event_id)
            self._next_event_id += 1
            self._events[event.dispenser_id].append(stored)
        return stored

    def update_event(self, event: TapEvent) -> None:
        with self._lock:
            events = self._events.get(event.dispenser_id, [])
            for index, existing in enumerate(events):
                if existing.id == event.id:
                    events[index] = event
                    return
        raise KeyError(f"Unknown tap event: {event.id}")

    def list_events(self, dispenser_id: str) -> List[TapEvent]:
        with self._lock:
            return list(self._events.get(dispenser_id, []))


class SQLiteDispenserRepository(DispenserRepository):
    """SQLite-backed repository; opens one connection per operation."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH, create_schema: bool = True):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
            create_schema: Create the tables on construction when missing
        """
        self.db_path = db_path
        if create_schema:
            initialize_schema(db_path)

    def create(self, dispenser: Dispenser) -> Dispenser:
        conn = get_connection(self.db_path)
        try:
            existing = conn.execute(
                "SELECT 1 FROM dispenser WHERE id = ?", (dispenser.id,)
            ).fetchone()
            if existing:
                raise ValueError(f"Dispenser already exists: {dispenser.id}")
            conn.execute(
                "INSERT INTO dispenser (id, flow_volume) VALUES (?, ?)",
                (dispenser.id, dispenser.flow_volume),
            )
            conn.commit()
        finally:
            conn.close()
        return dispenser

    def get_by_id(self, dispenser_id: str) -> Optional[Dispenser]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT id, flow_volume FROM dispenser WHERE id = ?", (dispenser_id,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return Dispenser(id=row["id"], flow_volume=row["flow_volume"])

    def list_all(self) -> List[Dispenser]:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(
                "SELECT id, flow_volume FROM dispenser ORDER BY seq"
            ).fetchall()
        finally:
            conn.close()
        return [Dispenser(id=row["id"], flow_volume=row["flow_volume"]) for row in rows]

    def append_event(self, event: TapEvent) -> TapEvent:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                """
                INSERT INTO tap_event
                (dispenser_id, status, start_time, end_time, flow_volume_snapshot)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    event.dispenser_id,
                    event.status.value,
                    _to_text(event.start_time),
                    _to_text(event.end_time),
                    event.flow_volume_snapshot,
                ),
            )
            conn.commit()
            event_id = int(cursor.lastrowid)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.debug(
            "Stored tap event %s for dispenser %s", event_id, event.dispenser_id,
            extra={"dispenser_id": event.dispenser_id, "event_id": event_id},
        )
        return replace(event, id=event_id)

    def update_event(self, event: TapEvent) -> None:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                """
                UPDATE tap_event
                SET status = ?, start_time = ?, end_time = ?, flow_volume_snapshot = ?
                WHERE id = ? AND dispenser_id = ?
                """,
                (
                    event.status.value,
                    _to_text(event.start_time),
                    _to_text(event.end_time),
                    event.flow_volume_snapshot,
                    event.id,
                    event.dispenser_id,
                ),
            )
            if cursor.rowcount == 0:
                conn.rollback()
                raise KeyError(f"Unknown tap event: {event.id}")
            conn.commit()
        finally:
            conn.close()

    def list_events(self, dispenser_id: str) -> List[TapEvent]:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(
                """
                SELECT id, dispenser_id, status, start_time, end_time, flow_volume_snapshot
                FROM tap_event
                WHERE dispenser_id = ?
                ORDER BY id
                """,
                (dispenser_id,),
            ).fetchall()
        finally:
            conn.close()
        return [
            TapEvent(
                id=row["id"],
                dispenser_id=row["dispenser_id"],
                status=TapStatus(row["status"]),
                start_time=_from_text(row["start_time"]),
                end_time=_from_text(row["end_time"]),
                flow_volume_snapshot=row["flow_volume_snapshot"],
            )
            for row in rows
        ]


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _from_text(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def create_repository(backend: str = "memory", db_path: str = DEFAULT_DB_PATH) -> DispenserRepository:
    """Build a repository for the configured storage backend.

    Args:
        backend: Either "memory" or "sqlite"
        db_path: SQLite database file, used by the sqlite backend only

    Returns:
        A fresh repository instance

    Raises:
        ValueError: If the backend is not supported
    """
    if backend == "memory":
        return InMemoryDispenserRepository()
    if backend == "sqlite":
        return SQLiteDispenserRepository(db_path)
    raise ValueError(f"Unsupported storage backend: {backend}")
