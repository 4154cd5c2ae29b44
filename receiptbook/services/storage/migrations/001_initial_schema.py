"""
Migration 001: administrator profile and receipt ledger.

The profile table holds at most one row (id = 1). Receipt ids come from
AUTOINCREMENT so they are strictly increasing and never reused.
"""

import sqlite3

VERSION = 1
NAME = "initial_schema"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create admin_profile and receipts tables with their indexes."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS admin_profile (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            auth_method TEXT NOT NULL CHECK (auth_method IN ('password', 'pin')),
            username TEXT,
            secret_hash TEXT NOT NULL,
            name TEXT NOT NULL DEFAULT '',
            block_number TEXT NOT NULL DEFAULT '',
            signature TEXT NOT NULL DEFAULT ''
        )
    """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS receipts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            receipt_number TEXT NOT NULL,
            name TEXT NOT NULL,
            date TEXT NOT NULL,  -- YYYY-MM-DD
            amount TEXT NOT NULL  -- Decimal, two places
        )
    """
    )
    conn.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_receipts_receipt_number "
        "ON receipts(receipt_number)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_receipts_name ON receipts(name)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_receipts_date ON receipts(date)")
