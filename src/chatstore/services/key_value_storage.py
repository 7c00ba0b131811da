import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Protocol

from src.chatstore.config import DEFAULT_DATABASE_PATH

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """Blocking string-keyed storage medium the chat state is written to."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def close(self) -> None:
        ...


class InMemoryKeyValueStorage:
    """Dict-backed storage; nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def close(self) -> None:
        return None


class SqliteKeyValueStorage:
    """
    Persists string values in a single SQLite table, with a graceful
    in-memory fallback when the database is unavailable or corrupted.
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = Path(db_path) if db_path else DEFAULT_DATABASE_PATH
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._fallback_mode = False
        self._fallback_values: Dict[str, str] = {}

        self._initialize_database()

    # --------------------------------------------------------------------- #
    # Initialization & teardown
    # --------------------------------------------------------------------- #
    def _initialize_database(self) -> None:
        """Attempt to set up the SQLite database; enable in-memory fallback on failure."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self._connection.execute("PRAGMA journal_mode=WAL;")
            self._create_schema()
            logger.info("Chat state storage initialized at %s", self.db_path)
        except Exception as exc:  # Broad except to guarantee fallback
            logger.error(
                "Failed to initialize chat state database at %s: %s. "
                "Falling back to in-memory storage.",
                self.db_path,
                exc,
            )
            self._activate_fallback_mode()

    def _create_schema(self) -> None:
        """Create the key/value table if it does not already exist."""
        if not self._connection:
            return
        with self._connection:
            self._connection.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )

    def close(self) -> None:
        """Close the SQLite connection if it is open."""
        with self._lock:
            if self._connection:
                try:
                    self._connection.close()
                except Exception:
                    logger.debug("Failed to close chat state database connection cleanly.", exc_info=True)
            self._connection = None

    def _activate_fallback_mode(self) -> None:
        """Switch to in-memory storage to ensure the app remains functional."""
        self._fallback_mode = True
        self._fallback_values = {}
        self.close()

    @property
    def fallback_mode(self) -> bool:
        return self._fallback_mode

    # --------------------------------------------------------------------- #
    # Key/value operations
    # --------------------------------------------------------------------- #
    def get(self, key: str) -> Optional[str]:
        with self._lock:
            if self._fallback_mode:
                return self._fallback_values.get(key)
            return self._read(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            if self._fallback_mode:
                self._fallback_values[key] = value
                return
            self._write(key, value)

    def delete(self, key: str) -> None:
        with self._lock:
            if self._fallback_mode:
                self._fallback_values.pop(key, None)
                return
            self._remove(key)

    # Callers hold self._lock for the helpers below.
    def _read(self, key: str) -> Optional[str]:
        try:
            if not self._connection:
                raise RuntimeError("Chat state database connection is not available.")
            cursor = self._connection.execute("SELECT value FROM kv_store WHERE key = ?;", (key,))
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.DatabaseError as exc:
            logger.error("Database error while reading key %s: %s", key, exc, exc_info=True)
            self._activate_fallback_mode()
            return self._fallback_values.get(key)

    def _write(self, key: str, value: str) -> None:
        try:
            if not self._connection:
                raise RuntimeError("Chat state database connection is not available.")
            self._connection.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at;
                """,
                (key, value, self._now()),
            )
            self._connection.commit()
        except sqlite3.DatabaseError as exc:
            logger.error("Database error while writing key %s: %s", key, exc, exc_info=True)
            self._activate_fallback_mode()
            self._fallback_values[key] = value

    def _remove(self, key: str) -> None:
        try:
            if not self._connection:
                raise RuntimeError("Chat state database connection is not available.")
            self._connection.execute("DELETE FROM kv_store WHERE key = ?;", (key,))
            self._connection.commit()
        except sqlite3.DatabaseError as exc:
            logger.error("Database error while deleting key %s: %s", key, exc, exc_info=True)
            self._activate_fallback_mode()
            self._fallback_values.pop(key, None)

    @staticmethod
    def _now() -> str:
        return datetime.now(tz=timezone.utc).isoformat(timespec="microseconds")
