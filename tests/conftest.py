"""
Shared fixtures for logsink tests.
"""

import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest

from logsink.config import SinkOptions
from logsink.events import LogEvent, LogLevel


@pytest.fixture
def db_path(tmp_path):
    """Path to a fresh (not yet created) database file."""
    return str(tmp_path / "logs.db")


@pytest.fixture
def make_options(db_path):
    """Build SinkOptions pointing at the temporary database."""

    def _make(**overrides: Any) -> SinkOptions:
        return SinkOptions(database_path=db_path, **overrides)

    return _make


@pytest.fixture
def make_event():
    """Build a LogEvent; keyword arguments become properties."""

    def _make(
        template: str = "Hello {Name}",
        level: LogLevel = LogLevel.INFORMATION,
        timestamp: Optional[datetime] = None,
        exception: Any = None,
        **properties: Any,
    ) -> LogEvent:
        return LogEvent.create(
            level, template, exception=exception, timestamp=timestamp, **properties
        )

    return _make


@pytest.fixture
def fetch_rows(db_path):
    """Read rows from the temporary database with the plain sqlite3 module."""

    def _fetch(sql: str = 'SELECT * FROM "Logs" ORDER BY "Id"', params: tuple = ()) -> List[Dict[str, Any]]:
        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row
        try:
            return [dict(row) for row in conn.execute(sql, params)]
        finally:
            conn.close()

    return _fetch


@pytest.fixture
def count_rows(fetch_rows):
    def _count(table: str = "Logs") -> int:
        return fetch_rows(f'SELECT COUNT(*) AS n FROM "{table}"')[0]["n"]

    return _count
