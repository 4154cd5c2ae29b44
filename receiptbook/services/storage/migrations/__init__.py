"""
Database migrations module.

Versioned, ordered migrations for the SQLite record store.
Migrations are applied in order and tracked in a migrations table.
"""

from .runner import SCHEMA_VERSION, MigrationRunner, column_exists, get_all_migrations

__all__ = ["SCHEMA_VERSION", "MigrationRunner", "column_exists", "get_all_migrations"]
