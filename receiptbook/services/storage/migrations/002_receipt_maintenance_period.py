"""
Migration 002: optional maintenance period label on receipts.
"""

import sqlite3

from .runner import column_exists

VERSION = 2
NAME = "receipt_maintenance_period"


def upgrade(conn: sqlite3.Connection) -> None:
    """Add receipts.maintenance_period."""
    if not column_exists(conn, "receipts", "maintenance_period"):
        conn.execute("ALTER TABLE receipts ADD COLUMN maintenance_period TEXT")
