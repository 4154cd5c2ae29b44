"""
Shared SQLite Connection

One connection per database file, opened lazily on first use and kept
for the life of the process. Every store object pointing at the same
file shares it.

Concurrent first opens (coroutines or Streamlit script threads) are
coalesced by a lock: exactly one caller connects and runs migrations,
the others receive the same connection.
"""

import sqlite3
import threading
from pathlib import Path
from typing import Optional, Union

import structlog

from receiptbook.services.storage.interface import StorageUnavailableError
from receiptbook.services.storage.migrations import SCHEMA_VERSION, MigrationRunner

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """
    Lazily-initialized, process-wide SQLite connection for one database file.

    The connection is never closed during normal operation; `reset()`
    exists for tests and for tools that replace the database file.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self.open_count = 0  # number of real connects, not open() calls

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> sqlite3.Connection:
        """
        Return the shared connection, connecting and migrating on first call.

        Raises:
            StorageUnavailableError: If the file cannot be opened or migrated,
                or was written by a newer schema version
        """
        if self._conn is not None:
            return self._conn

        with self._lock:
            if self._conn is None:
                self._conn = self._connect()
                self.open_count += 1
        return self._conn

    def _connect(self) -> sqlite3.Connection:
        """Open the database file and bring its schema up to date."""
        conn = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row

            runner = MigrationRunner(conn)
            current = runner.get_current_version()
            if current > SCHEMA_VERSION:
                raise StorageUnavailableError(
                    f"Database {self.db_path} has schema version {current}, "
                    f"this release supports up to {SCHEMA_VERSION}"
                )
            runner.run_pending()
        except StorageUnavailableError:
            if conn is not None:
                conn.close()
            raise
        except (sqlite3.Error, OSError) as e:
            if conn is not None:
                conn.close()
            logger.error("store_open_failed", db_path=str(self.db_path), error=str(e))
            raise StorageUnavailableError(f"Failed to open database {self.db_path}: {e}") from e

        logger.info("store_opened", db_path=str(self.db_path), schema_version=SCHEMA_VERSION)
        return conn

    def reset(self) -> None:
        """Close the connection so the next `open()` reconnects."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


_managers: dict[str, ConnectionManager] = {}
_managers_lock = threading.Lock()


def get_connection_manager(db_path: Union[Path, str]) -> ConnectionManager:
    """
    Get the process-wide connection manager for a database file.

    Different spellings of the same path share one manager.
    """
    key = str(Path(db_path).expanduser().resolve())
    with _managers_lock:
        manager = _managers.get(key)
        if manager is None:
            manager = ConnectionManager(Path(key))
            _managers[key] = manager
    return manager
