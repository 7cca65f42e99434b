from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.loyalty_transactions import LoyaltyTransaction
from app.db.models.user_loyalty_totals import UserLoyaltyTotal


def _as_decimal(value: object) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


class LoyaltyLedgerRepo:
    @staticmethod
    async def get_first_by_code(
        session: AsyncSession,
        *,
        user_id: int,
        owner_id: int,
        code: str,
    ) -> LoyaltyTransaction | None:
        stmt = (
            select(LoyaltyTransaction)
            .where(
                LoyaltyTransaction.user_id == user_id,
                LoyaltyTransaction.owner_id == owner_id,
                LoyaltyTransaction.code == code,
            )
            .order_by(LoyaltyTransaction.id.asc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, entry: LoyaltyTransaction) -> LoyaltyTransaction:
        session.add(entry)
        await session.flush()
        return entry

    @staticmethod
    async def sum_points(session: AsyncSession, *, user_id: int, owner_id: int) -> Decimal:
        stmt = select(func.coalesce(func.sum(LoyaltyTransaction.points), 0)).where(
            LoyaltyTransaction.user_id == user_id,
            LoyaltyTransaction.owner_id == owner_id,
        )
        result = await session.execute(stmt)
        return _as_decimal(result.scalar_one())

    @staticmethod
    async def list_for_user(
        session: AsyncSession,
        *,
        user_id: int,
        owner_id: int,
    ) -> list[LoyaltyTransaction]:
        stmt = (
            select(LoyaltyTransaction)
            .where(
                LoyaltyTransaction.user_id == user_id,
                LoyaltyTransaction.owner_id == owner_id,
            )
            .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def sum_success_points_by_user(
        session: AsyncSession,
        *,
        owner_id: int,
        since_utc: datetime,
        until_utc: datetime,
        limit: int,
        offset: int,
    ) -> list[tuple[int, Decimal]]:
        total_points = func.sum(LoyaltyTransaction.points).label("total_points")
        stmt = (
            select(LoyaltyTransaction.user_id, total_points)
            .where(
                LoyaltyTransaction.owner_id == owner_id,
                LoyaltyTransaction.status == "success",
                LoyaltyTransaction.created_at >= since_utc,
                LoyaltyTransaction.created_at <= until_utc,
            )
            .group_by(LoyaltyTransaction.user_id)
            .order_by(total_points.desc(), LoyaltyTransaction.user_id.asc())
            .limit(limit)
            .offset(offset)
        )
        result = await session.execute(stmt)
        return [(int(user_id), _as_decimal(points)) for user_id, points in result.all()]


class LoyaltyTotalsRepo:
    @staticmethod
    async def get(session: AsyncSession, *, user_id: int, owner_id: int) -> UserLoyaltyTotal | None:
        return await session.get(UserLoyaltyTotal, (user_id, owner_id))

    @staticmethod
    async def get_for_update(
        session: AsyncSession,
        *,
        user_id: int,
        owner_id: int,
    ) -> UserLoyaltyTotal | None:
        stmt = (
            select(UserLoyaltyTotal)
            .where(
                UserLoyaltyTotal.user_id == user_id,
                UserLoyaltyTotal.owner_id == owner_id,
            )
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert(
        session: AsyncSession,
        *,
        user_id: int,
        owner_id: int,
        total_points: Decimal,
        now_utc: datetime,
    ) -> UserLoyaltyTotal:
        total = await LoyaltyTotalsRepo.get_for_update(session, user_id=user_id, owner_id=owner_id)
        if total is None:
            total = UserLoyaltyTotal(
                user_id=user_id,
                owner_id=owner_id,
                total_points=total_points,
                created_at=now_utc,
                updated_at=now_utc,
            )
            session.add(total)
        else:
            total.total_points = total_points
            total.updated_at = now_utc
        await session.flush()
        return total
