"""Database fixtures for tests."""

import pytest
import tempfile
from pathlib import Path
from typing import Generator

from clipstash.database import ClipboardDB
from clipstash.services.database_service import DatabaseService
from fixtures.test_data import generate_timestamp, make_new_item


@pytest.fixture
def temp_db() -> Generator[ClipboardDB, None, None]:
    """Create a temporary in-memory database for testing."""
    db = ClipboardDB(":memory:")
    yield db
    db.close()


@pytest.fixture
def temp_db_file() -> Generator[ClipboardDB, None, None]:
    """Create a temporary file-based database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    db = ClipboardDB(db_path)
    yield db
    db.close()

    # Clean up
    for suffix in ("", "-wal", "-shm"):
        Path(db_path + suffix).unlink(missing_ok=True)


@pytest.fixture
def db_service() -> Generator[DatabaseService, None, None]:
    """Thread-safe service over an in-memory database."""
    service = DatabaseService(":memory:")
    yield service
    service.close()


@pytest.fixture
def populated_db(temp_db: ClipboardDB) -> ClipboardDB:
    """Create a database with sample data, oldest first."""
    temp_db.add_item(make_new_item("Hello World"), timestamp=generate_timestamp(minutes_ago=50))
    temp_db.add_item(make_new_item("Python code snippet"), timestamp=generate_timestamp(minutes_ago=40))
    temp_db.add_item(make_new_item("https://example.com"), timestamp=generate_timestamp(minutes_ago=30))
    temp_db.add_item(
        make_new_item("<b>bold</b> text", content_type="rich_text", rich_content=b"<b>bold</b>"),
        timestamp=generate_timestamp(minutes_ago=20),
    )
    temp_db.add_item(
        make_new_item(
            "/home/user/document.pdf",
            content_type="file",
            file_path="/home/user/document.pdf",
            file_name="document.pdf",
        ),
        timestamp=generate_timestamp(minutes_ago=10),
    )
    return temp_db
