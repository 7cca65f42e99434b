from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.users import User


def normalize_wallet_address(address: str) -> str:
    return address.strip().lower()


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def get_by_wallet_address(session: AsyncSession, address: str) -> User | None:
        stmt = select(User).where(
            func.lower(User.eth_wallet_address) == normalize_wallet_address(address)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create_by_wallet_address(
        session: AsyncSession,
        *,
        address: str,
        now_utc: datetime,
    ) -> tuple[User, bool]:
        user = await UsersRepo.get_by_wallet_address(session, address)
        if user is not None:
            return user, False

        user = User(
            eth_wallet_address=normalize_wallet_address(address),
            created_at=now_utc,
        )
        session.add(user)
        await session.flush()
        return user, True
