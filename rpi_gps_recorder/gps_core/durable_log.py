"""DurableLog - append-only SQLite history of every retained fix.

Schema notes:
  - One table, ``location_history``, with an AUTOINCREMENT id so ids are
    never reused and always increase in insertion order.
  - ``waypoint`` holds the fix serialized as JSON text.
  - ``createdAt`` defaults to the SQLite CURRENT_TIMESTAMP (UTC).
  - Each append is its own committed transaction in WAL mode with
    ``synchronous = FULL``, so a crash between appends loses nothing that
    was already acknowledged.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterator, Optional, Union

from ..core.logging_utils import get_module_logger
from .errors import DurableLogError
from .models import LogRecord

logger = get_module_logger("DurableLog")

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS location_history (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    waypoint  TEXT NOT NULL,
    createdAt TEXT DEFAULT CURRENT_TIMESTAMP
)
"""

_INSERT = "INSERT INTO location_history (waypoint) VALUES (?)"
_SELECT_ALL = "SELECT id, waypoint, createdAt FROM location_history ORDER BY id"
_COUNT = "SELECT COUNT(*) FROM location_history"
_TABLE_EXISTS = "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'location_history'"


class DurableLog:
    """Append-only store of serialized fixes.

    Parameters
    ----------
    db_path:
        Path to the SQLite file. Pass ``":memory:"`` for in-process testing.
    foreign_keys:
        Value for ``PRAGMA foreign_keys``; off unless asked for.
    create:
        Create the file and table when missing. The offline rebuilder opens
        with ``create=False`` so a missing log is an error, not an empty one.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        *,
        foreign_keys: bool = False,
        create: bool = True,
    ) -> None:
        self.db_path = db_path
        self.foreign_keys = foreign_keys
        self.create = create
        self._conn: Optional[sqlite3.Connection] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "DurableLog":
        """Open the database and apply the baseline pragmas.

        Raises:
            DurableLogError: if the file cannot be opened or, with
                ``create=False``, does not exist or has no history table.
        """
        if self._conn is not None:
            return self

        in_memory = str(self.db_path) == ":memory:"
        path = Path(self.db_path)
        if not in_memory:
            if not self.create and not path.exists():
                raise DurableLogError(f"Durable log not found at {path}")
            if self.create:
                try:
                    path.parent.mkdir(parents=True, exist_ok=True)
                except OSError as exc:
                    raise DurableLogError(f"Cannot create directory for {path}: {exc}") from exc

        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as exc:
            raise DurableLogError(f"Cannot open durable log {self.db_path}: {exc}") from exc

        try:
            conn.execute(f"PRAGMA foreign_keys = {'ON' if self.foreign_keys else 'OFF'}")
            if self.create:
                # auto_vacuum only takes effect before the first table exists
                conn.execute("PRAGMA auto_vacuum = INCREMENTAL")
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = FULL")
            if self.create:
                conn.execute(_CREATE_TABLE)
                conn.commit()
            elif conn.execute(_TABLE_EXISTS).fetchone() is None:
                raise DurableLogError(f"{self.db_path} has no location_history table")
        except sqlite3.Error as exc:
            conn.close()
            raise DurableLogError(f"Cannot prepare durable log {self.db_path}: {exc}") from exc
        except DurableLogError:
            conn.close()
            raise

        self._conn = conn
        logger.info("Opened durable log at %s", self.db_path)
        return self

    def close(self) -> None:
        """Close the database connection. Safe to call twice."""
        conn = self._conn
        self._conn = None
        if conn is None:
            return
        try:
            conn.close()
        except sqlite3.Error as exc:
            logger.warning("Error closing durable log: %s", exc)
            return
        logger.info("Closed durable log at %s", self.db_path)

    def __enter__(self) -> "DurableLog":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def append(self, payload: str) -> int:
        """Persist one serialized fix and return its record id."""
        conn = self._require_open()
        try:
            cursor = conn.execute(_INSERT, (payload,))
            conn.commit()
        except sqlite3.Error as exc:
            raise DurableLogError(f"Append failed: {exc}") from exc
        return cursor.lastrowid  # type: ignore[return-value]

    def scan(self) -> Iterator[LogRecord]:
        """Yield every record in id order, starting from the first each call."""
        conn = self._require_open()
        try:
            cursor = conn.execute(_SELECT_ALL)
            for record_id, payload, created_at in cursor:
                yield LogRecord(id=record_id, payload=payload, created_at=created_at)
        except sqlite3.Error as exc:
            raise DurableLogError(f"Scan failed: {exc}") from exc

    def count(self) -> int:
        conn = self._require_open()
        try:
            return int(conn.execute(_COUNT).fetchone()[0])
        except sqlite3.Error as exc:
            raise DurableLogError(f"Count failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_open(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DurableLogError("Durable log is not open")
        return self._conn
