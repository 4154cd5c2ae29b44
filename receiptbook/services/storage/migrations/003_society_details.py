"""
Migration 003: society details printed in document headers.
"""

import sqlite3

from .runner import column_exists

VERSION = 3
NAME = "society_details"

COLUMNS = ("society_name", "society_address", "society_reg_no")


def upgrade(conn: sqlite3.Connection) -> None:
    """Add society name, address and registration number to admin_profile."""
    for column in COLUMNS:
        if not column_exists(conn, "admin_profile", column):
            conn.execute(
                f"ALTER TABLE admin_profile ADD COLUMN {column} TEXT NOT NULL DEFAULT ''"
            )
