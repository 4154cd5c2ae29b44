"""
Migration 004: append-only audit log.
"""

import sqlite3

VERSION = 4
NAME = "audit_log"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create audit_log table."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS audit_log (
            event_id TEXT PRIMARY KEY,
            timestamp TEXT NOT NULL,
            event_type TEXT NOT NULL,
            severity TEXT NOT NULL,
            entity_type TEXT,
            entity_id TEXT,
            correlation_id TEXT,
            description TEXT NOT NULL,
            details_json TEXT,
            error_message TEXT,
            is_user_action INTEGER NOT NULL DEFAULT 0
        )
    """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_log_correlation ON audit_log(correlation_id)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_log_entity ON audit_log(entity_type, entity_id)"
    )
