"""Unit tests for the typed store wrapper."""

import pytest

from src.core import state_store
from src.core.config import Constants
from src.domain.task import ItemKind


@pytest.mark.unit
class TestListing:
    """Tests for per-user listings spanning several store pages."""

    async def test_list_items_reads_every_page(self, patched_db, today, make_account, make_item):
        user_id = make_account()
        other = make_account(email="other@example.com")
        make_item(other)
        for n in range(Constants.DEFAULT_PER_PAGE_LIMIT + 2):
            make_item(user_id, title=f"Task {n}")

        items = await state_store.list_items(user_id=user_id, kind=ItemKind.TASK)

        assert len(items) == Constants.DEFAULT_PER_PAGE_LIMIT + 2
        assert {item.user_id for item in items} == {user_id}

    async def test_list_subtasks_reads_every_page(self, patched_db, today, make_account, make_item):
        user_id = make_account()
        task_id = make_item(user_id)
        for n in range(Constants.DEFAULT_PER_PAGE_LIMIT + 1):
            make_item(user_id, kind=ItemKind.SUBTASK, parent_task_id=task_id, title=f"Step {n}")

        subtasks = await state_store.list_subtasks(user_id=user_id, parent_task_id=task_id)

        assert len(subtasks) == Constants.DEFAULT_PER_PAGE_LIMIT + 1

    async def test_list_completed_items_filters_day_and_flag(self, patched_db, today, make_account, make_item):
        user_id = make_account()
        done_today = make_item(user_id, completed=True)
        make_item(user_id, completed=False)
        make_item(user_id, completed=True, item_date="2024-06-14T09:00:00")
        subtask = make_item(user_id, kind=ItemKind.SUBTASK, parent_task_id=done_today, completed=True)

        items = await state_store.list_completed_items(user_id=user_id, day=today)

        assert sorted(item.id for item in items) == sorted([done_today, subtask])


@pytest.mark.unit
class TestLeaderboardLookups:
    """Tests for direct leaderboard entry reads and counts."""

    async def test_read_missing_entry(self, patched_db):
        assert await state_store.read_leaderboard_entry(user_id="42") is None

    async def test_count_above_points(self, patched_db):
        for user_id, points in (("1", 10), ("2", 30), ("3", 30), ("4", 50)):
            await state_store.write_leaderboard_entry(user_id=user_id, points=points)

        assert await state_store.count_leaderboard() == 4
        assert await state_store.count_leaderboard(min_points_exclusive=30) == 1
        assert await state_store.count_leaderboard(min_points_exclusive=5) == 4
