"""HTTP interface for accounts, point accounting and the leaderboard."""

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from src.core import db_client
from src.core.config import Constants
from src.core.errors import classify_error, classify_error_message
from src.domain.account import UserAccount
from src.domain.task import ItemKind, TaskCreate, TaskItem
from src.models.service_models import AccountingResult, LeaderboardEntry, LeaderboardStanding
from src.services import (
    account_service,
    challenge_service,
    completion_service,
    leaderboard_service,
    login_service,
    points_service,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["points"])


class RegisterRequest(BaseModel):
    name: str
    email: str


class PointsRequest(BaseModel):
    delta: int


class CompletionRequest(BaseModel):
    completed: bool
    kind: ItemKind = ItemKind.TASK


class CreateItemRequest(TaskCreate):
    kind: ItemKind = ItemKind.TASK
    parent_task_id: str | None = None


class CreateItemResponse(BaseModel):
    item: TaskItem
    result: AccountingResult


class ReconcileResponse(BaseModel):
    user_id: str
    challenge_progress: int = Field(..., ge=0, le=Constants.DAILY_CHALLENGE_GOAL)


def _http_error(exception: BaseException) -> HTTPException:
    error = classify_error(exception)
    logger.warning("Request failed: %s (%s)", error.code, exception)
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exception, KeyError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exception, ValueError):
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=error.model_dump(mode="json"))


def _result_response(result: AccountingResult) -> AccountingResult:
    """Return successful results; map failed ones to an HTTP error."""
    if result.success:
        return result

    error = classify_error_message(result.error)
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    if error.code in {"ERR_ACCOUNT_NOT_FOUND", "ERR_ITEM_NOT_FOUND"}:
        status_code = status.HTTP_404_NOT_FOUND
    raise HTTPException(status_code=status_code, detail=error.model_dump(mode="json"))


@router.post("/accounts", status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest) -> UserAccount:
    try:
        return await account_service.register_account(name=request.name, email=request.email)
    except (ValueError, db_client.DatabaseError) as e:
        raise _http_error(e) from e


@router.get("/accounts/{user_id}")
async def get_account(user_id: str) -> UserAccount:
    try:
        return await account_service.get_account(user_id=user_id)
    except (db_client.RecordNotFoundError, db_client.DatabaseError) as e:
        raise _http_error(e) from e


@router.delete("/accounts/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(user_id: str) -> None:
    try:
        await account_service.delete_account(user_id=user_id)
    except (db_client.RecordNotFoundError, db_client.DatabaseError) as e:
        raise _http_error(e) from e


@router.post("/accounts/{user_id}/login")
async def daily_login(user_id: str) -> AccountingResult:
    """Grant the daily login bonus if it has not been granted today."""
    return _result_response(await login_service.record_daily_login(user_id=user_id))


@router.post("/accounts/{user_id}/points")
async def add_points(user_id: str, request: PointsRequest) -> AccountingResult:
    return _result_response(await points_service.add_points(user_id=user_id, delta=request.delta))


@router.post("/accounts/{user_id}/items", status_code=status.HTTP_201_CREATED)
async def create_item(user_id: str, request: CreateItemRequest) -> CreateItemResponse:
    data = TaskCreate.model_validate(request.model_dump(include=set(TaskCreate.model_fields)))
    try:
        item, result = await completion_service.create_item(
            user_id=user_id, data=data, kind=request.kind, parent_task_id=request.parent_task_id
        )
    except ValueError as e:
        raise _http_error(e) from e

    _result_response(result)
    if item is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Item was not created")
    return CreateItemResponse(item=item, result=result)


@router.delete("/accounts/{user_id}/items/{item_id}")
async def delete_item(user_id: str, item_id: str, kind: ItemKind = ItemKind.TASK) -> AccountingResult:
    return _result_response(await completion_service.delete_item(user_id=user_id, item_id=item_id, kind=kind))


@router.put("/accounts/{user_id}/items/{item_id}/completion")
async def set_completion(user_id: str, item_id: str, request: CompletionRequest) -> AccountingResult:
    """Mark an item complete or incomplete and apply the point change."""
    result = await completion_service.toggle_completion(
        user_id=user_id, item_id=item_id, completed=request.completed, kind=request.kind
    )
    return _result_response(result)


@router.post("/accounts/{user_id}/challenge/reconcile")
async def reconcile_challenge(user_id: str) -> ReconcileResponse:
    progress = await challenge_service.reconcile_challenge_progress(user_id=user_id)
    if progress is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Challenge progress could not be reconciled"
        )
    return ReconcileResponse(user_id=user_id, challenge_progress=progress)


@router.get("/leaderboard")
async def get_leaderboard(limit: int = Constants.LEADERBOARD_TOP_N) -> list[LeaderboardEntry]:
    try:
        return await leaderboard_service.get_leaderboard(limit=limit)
    except db_client.DatabaseError as e:
        raise _http_error(e) from e


@router.get("/leaderboard/{user_id}")
async def get_standing(user_id: str) -> LeaderboardStanding:
    try:
        standing = await leaderboard_service.get_standing(user_id=user_id)
    except db_client.DatabaseError as e:
        raise _http_error(e) from e

    if standing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No leaderboard entry")
    return standing
