"""Unit tests for the signed-in points session."""

import asyncio
from datetime import timedelta

import pytest

from src.core.change_feed import ChangeAction, ChangeEvent
from src.domain.points import PointsState
from src.domain.task import TaskItem
from src.services import account_service, points_service
from src.services.session_service import PointsSession, reduce_account, reduce_items


@pytest.fixture
async def session():
    points_session = PointsSession()
    yield points_session
    await points_session.close()


@pytest.mark.unit
class TestReducers:
    """Tests for the pure state reducers."""

    def test_reduce_account_update(self):
        event = ChangeEvent(
            collection="users",
            record_id="u1",
            user_id="u1",
            action=ChangeAction.UPDATE,
            record={"id": "u1", "points": 42, "streak": 3, "challenge_progress": 2, "last_login_date": "2024-06-15"},
        )

        state = reduce_account(PointsState(user_id="u1"), event)

        assert state.points == 42
        assert state.streak == 3
        assert state.challenge_progress == 2

    def test_reduce_account_delete_keeps_signed_in_user(self):
        event = ChangeEvent(collection="users", record_id="u1", user_id="u1", action=ChangeAction.DELETE)

        assert reduce_account(PointsState(user_id="u1", points=5), event) == PointsState(user_id="u1")

    def test_reduce_items(self):
        record = TaskItem(id="7", user_id="u1", date="2024-06-15", completed=True).model_dump(mode="json")
        created = ChangeEvent(
            collection="tasks", record_id="7", user_id="u1", action=ChangeAction.CREATE, record=record
        )
        deleted = ChangeEvent(collection="tasks", record_id="7", user_id="u1", action=ChangeAction.DELETE)

        items = reduce_items({}, created)
        assert items["task:7"].completed

        assert reduce_items(items, deleted) == {}


@pytest.mark.unit
class TestPointsSession:
    """Tests for PointsSession against the in-memory store."""

    async def test_sign_in_runs_login_and_reconciliation(
        self, patched_db, today, make_account, make_item, session
    ):
        user_id = make_account(points=100, streak=2, last_login_date=today - timedelta(days=1), challenge_progress=3)
        make_item(user_id, completed=True)

        result = await session.on_auth_state_changed(user_id)
        await session.settle()

        assert result.changed
        assert session.user_id == user_id
        assert session.state.points == 110
        assert session.state.streak == 3
        assert session.state.challenge_progress == 1
        assert len(session.items) == 1

    async def test_repeated_sign_in_is_ignored(self, patched_db, today, make_account, session, user_points):
        user_id = make_account(points=100, last_login_date=today - timedelta(days=1))

        await session.on_auth_state_changed(user_id)
        assert await session.on_auth_state_changed(user_id) is None
        assert user_points(user_id)["points"] == 110

    async def test_sign_out_resets_state(self, patched_db, today, make_account, session, change_feed):
        user_id = make_account(points=100, last_login_date=today)

        await session.on_auth_state_changed(user_id)
        assert change_feed.subscriber_count() == 2

        await session.on_auth_state_changed(None)

        assert session.state == PointsState()
        assert session.items == []
        assert change_feed.subscriber_count() == 0

    async def test_complete_task_updates_state(self, patched_db, today, make_account, make_item, session):
        user_id = make_account(points=40, last_login_date=today)
        item_ids = [make_item(user_id, title=f"Task {n}") for n in range(3)]
        await session.on_auth_state_changed(user_id)

        for item_id in item_ids:
            await session.complete_task(item_id, True)
        await session.settle()

        assert session.state.points == 40 + 20 + 20 + 70
        assert session.state.challenge_progress == 3
        assert all(item.completed for item in session.items)

    async def test_external_writes_are_observed(self, patched_db, today, make_account, session):
        user_id = make_account(points=40, last_login_date=today)
        await session.on_auth_state_changed(user_id)

        await points_service.add_points(user_id=user_id, delta=15)
        await session.settle()

        assert session.state.points == 55

    async def test_actions_require_sign_in(self, session):
        with pytest.raises(PermissionError):
            await session.add_points(5)

    async def test_notifications_stream(self, patched_db, today, make_account, session):
        user_id = make_account(points=40, last_login_date=today)
        await session.on_auth_state_changed(user_id)

        stream = session.notifications()
        next_toast = asyncio.create_task(anext(stream))
        await asyncio.sleep(0)

        await session.add_points(25)
        toast = await asyncio.wait_for(next_toast, timeout=1)
        await stream.aclose()

        assert toast.delta == 25
        assert toast.message == "🎉 You've earned 25 points!"

    async def test_sign_in_with_unknown_account(self, patched_db, today, session):
        result = await session.on_auth_state_changed("missing")

        assert not result.success
        assert session.user_id == "missing"
        assert session.state.points == 0

    async def test_account_deletion_keeps_session_subscribed(
        self, patched_db, today, make_account, make_item, session, change_feed
    ):
        user_id = make_account(points=100, last_login_date=today)
        make_item(user_id)
        await session.on_auth_state_changed(user_id)

        await account_service.delete_account(user_id=user_id)
        await session.settle()

        assert session.user_id == user_id
        assert session.state.points == 0
        assert session.items == []
        assert await session.on_auth_state_changed(user_id) is None
        assert change_feed.subscriber_count() == 2

        await session.on_auth_state_changed(None)
        assert change_feed.subscriber_count() == 0
