from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from app.api.routes.internal_errors import as_http_exception
from app.core.config import get_settings
from app.db.session import SessionLocal
from app.economy.streak.errors import StreakError
from app.economy.streak.service import StreakService, check_in, streak_storage_guard
from app.services.internal_auth import assert_internal_access

router = APIRouter(tags=["internal", "streaks"])
logger = structlog.get_logger(__name__)


class StreakCheckInRequest(BaseModel):
    user_id: int = Field(gt=0)
    owner_id: int = Field(gt=0)


class StreakCheckInResponse(BaseModel):
    streak_count: int = Field(ge=1)
    points_awarded_ok: bool
    points_added: float | None = None
    total_points: float | None = None


class StreakResponse(BaseModel):
    user_id: int
    owner_id: int
    streak_count: int = Field(ge=1)


def _assert_internal_access(request: Request) -> None:
    assert_internal_access(request, settings=get_settings(), scope="streaks")


@router.post("/internal/streaks/check-in", response_model=StreakCheckInResponse)
async def daily_check_in(payload: StreakCheckInRequest, request: Request) -> StreakCheckInResponse:
    _assert_internal_access(request)

    try:
        result = await check_in(
            user_id=payload.user_id,
            owner_id=payload.owner_id,
            now_utc=datetime.now(timezone.utc),
            session_factory=SessionLocal,
        )
    except StreakError as exc:
        logger.info(
            "streak_check_in_rejected",
            user_id=payload.user_id,
            owner_id=payload.owner_id,
            error_code=exc.code,
        )
        raise as_http_exception(exc) from exc

    return StreakCheckInResponse(
        streak_count=result.streak_count,
        points_awarded_ok=result.points_awarded_ok,
        points_added=None if result.points_added is None else float(result.points_added),
        total_points=None if result.total_points is None else float(result.total_points),
    )


@router.get("/internal/streaks", response_model=StreakResponse)
async def get_streak(
    request: Request,
    user_id: int = Query(gt=0),
    owner_id: int = Query(gt=0),
) -> StreakResponse:
    _assert_internal_access(request)

    try:
        async with streak_storage_guard("get_streak", user_id=user_id, owner_id=owner_id):
            async with SessionLocal.begin() as session:
                streak_count = await StreakService.get_streak(session, user_id=user_id, owner_id=owner_id)
    except StreakError as exc:
        raise as_http_exception(exc) from exc
    return StreakResponse(user_id=user_id, owner_id=owner_id, streak_count=streak_count)
