"""Typed access to per-user account, item and leaderboard records.

Wraps db_client with the domain models and publishes every committed write to
the change feed, so subscribers see account and item changes without polling.
"""

import logging
from datetime import date
from typing import Any

from src.core import db_client
from src.core.change_feed import ChangeAction, ChangeEvent, Subscription, change_feed
from src.core.config import Constants
from src.domain.account import UserAccount
from src.domain.task import ItemKind, TaskItem


logger = logging.getLogger(__name__)

ACCOUNT_TOPIC = "users"
ITEMS_TOPIC = "tasks"


def _publish(*, topic: str, user_id: str, record_id: str, action: ChangeAction, record: dict[str, Any] | None) -> None:
    delivered = change_feed.publish(
        ChangeEvent(collection=topic, record_id=record_id, user_id=user_id, action=action, record=record)
    )
    logger.debug(
        "Published change",
        extra={"collection": topic, "record_id": record_id, "action": action, "subscribers": delivered},
    )


def _to_item(record: dict[str, Any], kind: ItemKind) -> TaskItem:
    return TaskItem.model_validate({**record, "kind": kind})


# Accounts


async def create_account(*, data: dict[str, Any]) -> UserAccount:
    """Insert a new account record."""
    record = await db_client.create_record(collection="users", data=data)
    account = UserAccount.model_validate(record)
    _publish(
        topic=ACCOUNT_TOPIC, user_id=account.id, record_id=account.id, action=ChangeAction.CREATE, record=record
    )
    return account


async def read_account(*, user_id: str) -> UserAccount:
    """Read an account.

    Raises:
        db_client.RecordNotFoundError: If the account does not exist
        db_client.DatabaseError: If the store is unavailable
    """
    record = await db_client.get_record(collection="users", record_id=user_id)
    return UserAccount.model_validate(record)


async def write_account(*, user_id: str, fields: dict[str, Any]) -> UserAccount:
    """Apply a partial update to an account as one atomic write."""
    record = await db_client.update_record(collection="users", record_id=user_id, data=fields)
    _publish(topic=ACCOUNT_TOPIC, user_id=user_id, record_id=user_id, action=ChangeAction.UPDATE, record=record)
    return UserAccount.model_validate(record)


async def delete_account(*, user_id: str) -> None:
    await db_client.delete_record(collection="users", record_id=user_id)
    _publish(topic=ACCOUNT_TOPIC, user_id=user_id, record_id=user_id, action=ChangeAction.DELETE, record=None)


def subscribe_account(*, user_id: str) -> Subscription:
    """Subscribe to committed changes of the user's account record."""
    return change_feed.subscribe(collection=ACCOUNT_TOPIC, user_id=user_id)


# Tasks and subtasks


async def create_item(*, user_id: str, kind: ItemKind, data: dict[str, Any]) -> TaskItem:
    """Insert a task or subtask owned by the user."""
    record = await db_client.create_record(collection=kind.collection, data={**data, "user_id": user_id})
    item = _to_item(record, kind)
    _publish(
        topic=ITEMS_TOPIC,
        user_id=user_id,
        record_id=item.id,
        action=ChangeAction.CREATE,
        record=item.model_dump(mode="json"),
    )
    return item


async def read_item(*, user_id: str, item_id: str, kind: ItemKind) -> TaskItem:
    """Read one of the user's items.

    Raises:
        db_client.RecordNotFoundError: If the item does not exist or belongs to another user
        db_client.DatabaseError: If the store is unavailable
    """
    record = await db_client.get_record(collection=kind.collection, record_id=item_id)
    item = _to_item(record, kind)
    if item.user_id != user_id:
        msg = f"{kind} {item_id} does not belong to user {user_id}"
        raise db_client.RecordNotFoundError(msg)
    return item


async def write_item(*, user_id: str, item_id: str, kind: ItemKind, fields: dict[str, Any]) -> TaskItem:
    record = await db_client.update_record(collection=kind.collection, record_id=item_id, data=fields)
    item = _to_item(record, kind)
    _publish(
        topic=ITEMS_TOPIC,
        user_id=user_id,
        record_id=item_id,
        action=ChangeAction.UPDATE,
        record=item.model_dump(mode="json"),
    )
    return item


async def delete_item(*, user_id: str, item_id: str, kind: ItemKind) -> None:
    await db_client.delete_record(collection=kind.collection, record_id=item_id)
    _publish(topic=ITEMS_TOPIC, user_id=user_id, record_id=item_id, action=ChangeAction.DELETE, record=None)


async def _list_all(*, collection: str, filter_query: str) -> list[dict[str, Any]]:
    """Read every matching record, one page at a time."""
    per_page = Constants.DEFAULT_PER_PAGE_LIMIT
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await db_client.list_records(
            collection=collection, filter_query=filter_query, page=page, per_page=per_page
        )
        records.extend(batch)
        if len(batch) < per_page:
            return records
        page += 1


def _owner_filter(user_id: str) -> str:
    return f'user_id = "{db_client.sanitize_param(user_id)}"'


async def list_items(*, user_id: str, kind: ItemKind | None = None) -> list[TaskItem]:
    """List all of the user's tasks and subtasks (or only one kind)."""
    kinds = [kind] if kind else list(ItemKind)
    items: list[TaskItem] = []
    for item_kind in kinds:
        records = await _list_all(collection=item_kind.collection, filter_query=_owner_filter(user_id))
        items.extend(_to_item(record, item_kind) for record in records)
    return items


async def list_completed_items(*, user_id: str, day: date) -> list[TaskItem]:
    """List the user's completed tasks and subtasks whose date falls on the given day."""
    filter_query = f'{_owner_filter(user_id)} && completed = true && date ~ "{day.isoformat()}"'
    items: list[TaskItem] = []
    for item_kind in ItemKind:
        records = await _list_all(collection=item_kind.collection, filter_query=filter_query)
        items.extend(_to_item(record, item_kind) for record in records)
    return items


async def list_subtasks(*, user_id: str, parent_task_id: str) -> list[TaskItem]:
    records = await _list_all(
        collection=ItemKind.SUBTASK.collection,
        filter_query=f'{_owner_filter(user_id)} && parent_task_id = "{db_client.sanitize_param(parent_task_id)}"',
    )
    return [_to_item(record, ItemKind.SUBTASK) for record in records]


def subscribe_tasks(*, user_id: str) -> Subscription:
    """Subscribe to committed changes of the user's tasks and subtasks."""
    return change_feed.subscribe(collection=ITEMS_TOPIC, user_id=user_id)


# Leaderboard


async def write_leaderboard_entry(*, user_id: str, points: int, name: str | None = None) -> dict[str, Any]:
    """Overwrite the user's leaderboard entry with the given points (and name, if provided)."""
    data: dict[str, Any] = {"points": points}
    if name is not None:
        data["name"] = name
    return await db_client.upsert_record(collection="leaderboard", record_id=user_id, data=data)


async def delete_leaderboard_entry(*, user_id: str) -> None:
    await db_client.delete_record(collection="leaderboard", record_id=user_id)


async def read_leaderboard_entry(*, user_id: str) -> dict[str, Any] | None:
    """Read the user's leaderboard entry, or None if there is none."""
    try:
        return await db_client.get_record(collection="leaderboard", record_id=user_id)
    except db_client.RecordNotFoundError:
        return None


async def count_leaderboard(*, min_points_exclusive: int | None = None) -> int:
    """Count leaderboard entries, optionally only those with more than the given points."""
    filter_query = f'points > "{min_points_exclusive}"' if min_points_exclusive is not None else ""
    return await db_client.count_records(collection="leaderboard", filter_query=filter_query)


async def list_leaderboard(*, limit: int) -> list[dict[str, Any]]:
    return await db_client.list_records(collection="leaderboard", per_page=limit, sort="-points")
