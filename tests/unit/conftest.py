"""Pytest configuration and fixtures for unit tests."""

from datetime import date
from typing import Any

import pytest

from src.core.change_feed import ChangeFeed
from src.domain.task import ItemKind
from src.services.notification_service import NotificationChannel
from tests.unit.mocks import InMemoryDBClient


TODAY = date(2024, 6, 15)


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.upsert_record", in_memory_db.upsert_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.count_records", in_memory_db.count_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)
    return in_memory_db


@pytest.fixture(autouse=True)
def fresh_channels(monkeypatch):
    """Give every test its own change feed and notification channel."""
    feed = ChangeFeed()
    channel = NotificationChannel()
    monkeypatch.setattr("src.core.state_store.change_feed", feed)
    monkeypatch.setattr("src.services.notification_service.notification_channel", channel)
    monkeypatch.setattr("src.services.session_service.notification_channel", channel)
    return feed, channel


@pytest.fixture
def change_feed(fresh_channels):
    return fresh_channels[0]


@pytest.fixture
def notifications(fresh_channels):
    return fresh_channels[1]


@pytest.fixture
def today(monkeypatch):
    """Pin the local calendar date used by every accounting step."""
    monkeypatch.setattr("src.core.clock.local_today", lambda: TODAY)
    return TODAY


@pytest.fixture
def make_account(in_memory_db):
    """Factory inserting an account record straight into the in-memory store."""

    def _make(
        *,
        points: int = 0,
        streak: int = 0,
        last_login_date: date | None = None,
        challenge_progress: int = 0,
        name: str = "Alice",
        email: str = "alice@example.com",
    ) -> str:
        record = {
            "name": name,
            "email": email,
            "points": points,
            "streak": streak,
            "last_login_date": last_login_date.isoformat() if last_login_date else None,
            "challenge_progress": challenge_progress,
            "schema_version": 1,
        }
        user_id = str(in_memory_db._id_counter)
        in_memory_db._id_counter += 1
        in_memory_db.records("users")[user_id] = {"id": user_id, **record}
        return user_id

    return _make


@pytest.fixture
def make_item(in_memory_db):
    """Factory inserting a task or subtask record straight into the in-memory store."""

    def _make(
        user_id: str,
        *,
        item_date: date | str = TODAY,
        completed: bool = False,
        kind: ItemKind = ItemKind.TASK,
        parent_task_id: str | None = None,
        title: str = "Water the plants",
    ) -> str:
        item_id = str(in_memory_db._id_counter)
        in_memory_db._id_counter += 1
        record: dict[str, Any] = {
            "id": item_id,
            "user_id": user_id,
            "title": title,
            "description": "",
            "date": item_date if isinstance(item_date, str) else f"{item_date.isoformat()}T09:00:00",
            "priority": "Low",
            "tags": [],
            "completed": completed,
        }
        if kind is ItemKind.SUBTASK:
            record["parent_task_id"] = parent_task_id
        in_memory_db.records(kind.collection)[item_id] = record
        return item_id

    return _make


@pytest.fixture
def user_points(in_memory_db):
    """Read back the stored points, streak and progress of an account."""

    def _read(user_id: str) -> dict[str, Any]:
        return in_memory_db.records("users")[user_id]

    return _read
