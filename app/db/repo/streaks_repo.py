from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.streaks import Streak


class StreaksRepo:
    @staticmethod
    async def get(session: AsyncSession, *, user_id: int, owner_id: int) -> Streak | None:
        return await session.get(Streak, (user_id, owner_id))

    @staticmethod
    async def get_for_update(session: AsyncSession, *, user_id: int, owner_id: int) -> Streak | None:
        stmt = (
            select(Streak)
            .where(Streak.user_id == user_id, Streak.owner_id == owner_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        user_id: int,
        owner_id: int,
        streak_count: int,
        last_check_in: datetime,
    ) -> Streak:
        streak = Streak(
            user_id=user_id,
            owner_id=owner_id,
            streak_count=streak_count,
            last_check_in=last_check_in,
        )
        session.add(streak)
        await session.flush()
        return streak
