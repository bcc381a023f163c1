"""Account service for registration and account lifecycle."""

import logging
import re

from src.core import clock, db_client, state_store
from src.core.config import Constants
from src.core.logging import span
from src.domain.account import ACCOUNT_SCHEMA_VERSION, UserAccount
from src.domain.task import ItemKind
from src.services import leaderboard_service


logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 50


def _validate_registration(*, name: str, email: str) -> tuple[str, str]:
    name = name.strip()
    email = email.strip().lower()

    if not name:
        raise ValueError("Name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")
    if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email):
        raise ValueError("The email address is not valid.")

    return name, email


async def register_account(*, name: str, email: str) -> UserAccount:
    """Create an account for a newly signed-up user.

    Registration counts as the first login: the account starts with the
    registration bonus, today's login date and a one-day streak, and its
    leaderboard entry is created with the same points.

    Args:
        name: Display name
        email: Login email (must be unique)

    Returns:
        The created account

    Raises:
        ValueError: If the name or email is invalid or the email is taken
        db_client.DatabaseError: If the store is unavailable
    """
    with span("account_service.register_account"):
        name, email = _validate_registration(name=name, email=email)

        existing = await db_client.get_first_record(
            collection="users",
            filter_query=f'email = "{db_client.sanitize_param(email)}"',
        )
        if existing:
            msg = "The email address is already in use by another account."
            logger.warning("Registration rejected for %s: %s", email, msg)
            raise ValueError(msg)

        account = await state_store.create_account(
            data={
                "name": name,
                "email": email,
                "points": Constants.REGISTRATION_POINTS,
                "streak": 1,
                "last_login_date": clock.local_today().isoformat(),
                "challenge_progress": 0,
                "schema_version": ACCOUNT_SCHEMA_VERSION,
            }
        )
        await leaderboard_service.mirror(user_id=account.id, points=account.points, name=account.name)

        logger.info("Registered account %s (%s)", account.id, email)
        return account


async def get_account(*, user_id: str) -> UserAccount:
    """Get an account by ID.

    Raises:
        db_client.RecordNotFoundError: If the account does not exist
        db_client.DatabaseError: If the store is unavailable
    """
    return await state_store.read_account(user_id=user_id)


async def delete_account(*, user_id: str) -> None:
    """Delete an account together with its items and leaderboard entry.

    Raises:
        db_client.RecordNotFoundError: If the account does not exist
        db_client.DatabaseError: If the store is unavailable
    """
    with span("account_service.delete_account"):
        await state_store.read_account(user_id=user_id)

        for item in await state_store.list_items(user_id=user_id, kind=ItemKind.SUBTASK):
            await state_store.delete_item(user_id=user_id, item_id=item.id, kind=ItemKind.SUBTASK)
        for item in await state_store.list_items(user_id=user_id, kind=ItemKind.TASK):
            await state_store.delete_item(user_id=user_id, item_id=item.id, kind=ItemKind.TASK)

        await leaderboard_service.remove_entry(user_id=user_id)
        await state_store.delete_account(user_id=user_id)
        logger.info("Deleted account %s", user_id)
