"""Pytest configuration and fixtures for integration tests."""

from datetime import date

import pytest

from src.core import db_client
from src.core.config import settings


TODAY = date(2024, 6, 15)


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """Point the store at a fresh SQLite file with the schema applied."""
    db_path = tmp_path / "taskstreak.db"
    monkeypatch.setattr(settings, "sqlite_db_path", str(db_path))

    await db_client.init_db()
    yield db_path
    await db_client.close_connection()


@pytest.fixture
def today(monkeypatch):
    """Pin the local calendar date used by every accounting step."""
    monkeypatch.setattr("src.core.clock.local_today", lambda: TODAY)
    return TODAY
