"""
Migration runner for versioned database schema changes.

Migrations are named with format: {version}_{name}.py
E.g., 001_initial_schema.py, 002_receipt_maintenance_period.py

Each migration must define:
- VERSION: int
- NAME: str
- upgrade(conn: Connection) -> None

Every upgrade checks for existing tables, indexes and columns before
creating them, so a partially applied migration can simply run again.
"""

import importlib
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

# Highest migration version this code knows about. A database
# reporting a newer version was written by a newer release.
SCHEMA_VERSION = 4


@dataclass
class Migration:
    """Represents a database migration."""

    version: int
    name: str
    upgrade: Callable[[sqlite3.Connection], None]


def column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    """Check whether `table` already has `column`."""
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(row[1] == column for row in rows)


def get_all_migrations() -> list[Migration]:
    """
    Load all migrations from the migrations directory.

    Returns migrations sorted by version.
    """
    migrations = []
    migrations_dir = Path(__file__).parent

    for py_file in sorted(migrations_dir.glob("[0-9][0-9][0-9]_*.py")):
        module = importlib.import_module(f"{__package__}.{py_file.stem}")
        migrations.append(
            Migration(
                version=module.VERSION,
                name=module.NAME,
                upgrade=module.upgrade,
            )
        )

    return sorted(migrations, key=lambda m: m.version)


class MigrationRunner:
    """
    Runs database migrations in order.

    Tracks applied migrations in a `migrations` table.
    """

    def __init__(self, conn: sqlite3.Connection):
        """Initialize with a database connection."""
        self.conn = conn
        self._ensure_migrations_table()

    def _ensure_migrations_table(self) -> None:
        """Create migrations tracking table if it doesn't exist."""
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
        """
        )
        self.conn.commit()

    def get_applied_versions(self) -> set[int]:
        """Get set of applied migration versions."""
        cursor = self.conn.execute("SELECT version FROM migrations ORDER BY version")
        return {row[0] for row in cursor.fetchall()}

    def get_current_version(self) -> int:
        """Get the highest applied migration version."""
        cursor = self.conn.execute("SELECT MAX(version) FROM migrations")
        result = cursor.fetchone()[0]
        return result if result is not None else 0

    def apply_migration(self, migration: Migration) -> None:
        """Apply a single migration."""
        logger.info("migration_applying", version=migration.version, name=migration.name)

        try:
            migration.upgrade(self.conn)

            now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
            self.conn.execute(
                "INSERT INTO migrations (version, name, applied_at) VALUES (?, ?, ?)",
                (migration.version, migration.name, now),
            )
            self.conn.commit()
            logger.info("migration_applied", version=migration.version)

        except Exception as e:
            self.conn.rollback()
            logger.error("migration_failed", version=migration.version, error=str(e))
            raise

    def run_pending(self) -> list[int]:
        """
        Run all pending migrations.

        Returns list of applied migration versions.
        """
        applied = self.get_applied_versions()
        pending = [m for m in get_all_migrations() if m.version not in applied]

        applied_versions = []
        for migration in pending:
            self.apply_migration(migration)
            applied_versions.append(migration.version)

        if applied_versions:
            logger.info("migrations_complete", applied=applied_versions)
        else:
            logger.debug("no_pending_migrations")

        return applied_versions
