from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.collections import Collection


class CollectionsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, collection_id: int) -> Collection | None:
        return await session.get(Collection, collection_id)

    @staticmethod
    async def list_all(session: AsyncSession) -> list[Collection]:
        stmt = select(Collection).order_by(Collection.id.asc())
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_by_standard(session: AsyncSession, *, standard: str) -> list[Collection]:
        stmt = (
            select(Collection)
            .where(Collection.standard == standard)
            .order_by(Collection.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
