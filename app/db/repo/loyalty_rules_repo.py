from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.loyalty_rules import LoyaltyRule


class LoyaltyRulesRepo:
    @staticmethod
    async def get_by_owner_and_code(
        session: AsyncSession,
        *,
        owner_id: int,
        code: str,
    ) -> LoyaltyRule | None:
        stmt = select(LoyaltyRule).where(
            LoyaltyRule.owner_id == owner_id,
            LoyaltyRule.code == code,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_by_owner(session: AsyncSession, *, owner_id: int) -> list[LoyaltyRule]:
        stmt = (
            select(LoyaltyRule)
            .where(LoyaltyRule.owner_id == owner_id)
            .order_by(LoyaltyRule.code.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_or_create(
        session: AsyncSession,
        *,
        owner_id: int,
        code: str,
        value: Decimal,
        rule_type: str,
        now_utc: datetime,
    ) -> tuple[LoyaltyRule, bool]:
        rule = await LoyaltyRulesRepo.get_by_owner_and_code(session, owner_id=owner_id, code=code)
        if rule is not None:
            return rule, False

        rule = LoyaltyRule(
            owner_id=owner_id,
            code=code,
            value=value,
            type=rule_type,
            created_at=now_utc,
            updated_at=now_utc,
        )
        session.add(rule)
        await session.flush()
        return rule, True

    @staticmethod
    async def delete(session: AsyncSession, *, rule: LoyaltyRule) -> None:
        await session.delete(rule)
        await session.flush()
