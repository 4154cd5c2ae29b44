"""
Shared fixtures.

Every test gets its own SQLite file under tmp_path; the process-wide
connection for that file is closed again afterwards.
"""

import asyncio
import base64
from io import BytesIO

import pytest
from PIL import Image

from receiptbook.services.storage import (
    SQLiteAuditStorage,
    SQLiteRecordStore,
    get_connection_manager,
)


@pytest.fixture
def run_async():
    """Run a coroutine to completion (the code under test is async)."""
    return asyncio.run


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "data" / "ReceiptBookDB.sqlite3"
    yield path
    get_connection_manager(path).reset()


@pytest.fixture
def store(db_path):
    return SQLiteRecordStore(db_path)


@pytest.fixture
def audit_storage(db_path):
    return SQLiteAuditStorage(db_path)


@pytest.fixture
def png_bytes():
    """A small valid PNG image."""
    buffer = BytesIO()
    Image.new("RGB", (60, 30), "white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def signature_data_url(png_bytes):
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")
