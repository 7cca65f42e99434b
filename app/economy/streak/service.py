from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.db.models.streaks import Streak
from app.db.repo.streaks_repo import StreaksRepo
from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.economy.loyalty.errors import LoyaltyError
from app.economy.loyalty.locks import KeyedLocks
from app.economy.loyalty.service import accrue_points
from app.economy.streak.errors import (
    StreakAlreadyCheckedInError,
    StreakInfrastructureError,
    StreakNotFoundError,
    StreakUserNotFoundError,
)
from app.economy.streak.rules import apply_check_in
from app.economy.streak.time import ensure_utc
from app.economy.streak.types import CheckInResult, CheckInTransition, StreakSnapshot

logger = structlog.get_logger(__name__)

check_in_locks = KeyedLocks()


class StreakService:
    @staticmethod
    def _snapshot_from_model(state: Streak) -> StreakSnapshot:
        return StreakSnapshot(
            streak_count=state.streak_count,
            last_check_in=ensure_utc(state.last_check_in),
        )

    @staticmethod
    async def record_check_in(
        session: AsyncSession,
        *,
        user_id: int,
        owner_id: int,
        now_utc: datetime,
    ) -> StreakSnapshot:
        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise StreakUserNotFoundError(context={"user_id": user_id})

        state = await StreaksRepo.get_for_update(session, user_id=user_id, owner_id=owner_id)
        current = None if state is None else StreakService._snapshot_from_model(state)

        decision = apply_check_in(current, now_utc=now_utc)
        if decision.transition == CheckInTransition.TOO_EARLY or decision.snapshot is None:
            raise StreakAlreadyCheckedInError(context={"user_id": user_id, "owner_id": owner_id})

        snapshot = decision.snapshot
        if state is None:
            await StreaksRepo.create(
                session,
                user_id=user_id,
                owner_id=owner_id,
                streak_count=snapshot.streak_count,
                last_check_in=snapshot.last_check_in,
            )
        else:
            state.streak_count = snapshot.streak_count
            state.last_check_in = snapshot.last_check_in
            await session.flush()

        logger.info(
            "streak_checked_in",
            user_id=user_id,
            owner_id=owner_id,
            transition=decision.transition.value,
            streak_count=snapshot.streak_count,
        )
        return snapshot

    @staticmethod
    async def get_streak(session: AsyncSession, *, user_id: int, owner_id: int) -> int:
        state = await StreaksRepo.get(session, user_id=user_id, owner_id=owner_id)
        if state is None:
            raise StreakNotFoundError(context={"user_id": user_id, "owner_id": owner_id})
        return state.streak_count


async def check_in(
    *,
    user_id: int,
    owner_id: int,
    now_utc: datetime | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> CheckInResult:
    """Commits the streak transition, then awards the daily check-in points.

    A failed award is reported on the result and never undoes the check-in.
    """
    settings = get_settings()
    factory = session_factory or SessionLocal
    moment = now_utc or datetime.now(timezone.utc)

    async with check_in_locks.hold((user_id, owner_id)):
        try:
            async with factory.begin() as session:
                snapshot = await StreakService.record_check_in(
                    session,
                    user_id=user_id,
                    owner_id=owner_id,
                    now_utc=moment,
                )
        except SQLAlchemyError as exc:
            logger.exception("streak_check_in_storage_failed", user_id=user_id, owner_id=owner_id)
            raise StreakInfrastructureError(context={"operation": "check_in"}) from exc

    try:
        accrual = await accrue_points(
            user_id=user_id,
            owner_id=owner_id,
            code=settings.daily_check_in_code,
            received_value=Decimal(settings.daily_check_in_value),
            now_utc=moment,
            session_factory=factory,
        )
    except LoyaltyError as exc:
        logger.warning(
            "streak_check_in_points_failed",
            user_id=user_id,
            owner_id=owner_id,
            code=settings.daily_check_in_code,
            error_code=exc.code,
            error_kind=exc.kind,
        )
        return CheckInResult(
            streak_count=snapshot.streak_count,
            points_awarded_ok=False,
            points_added=None,
            total_points=None,
        )

    return CheckInResult(
        streak_count=snapshot.streak_count,
        points_awarded_ok=True,
        points_added=accrual.points_added,
        total_points=accrual.total_points,
    )


@asynccontextmanager
async def streak_storage_guard(operation: str, **log_fields: object) -> AsyncIterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("streak_storage_failed", operation=operation, **log_fields)
        raise StreakInfrastructureError(context={"operation": operation}) from exc
