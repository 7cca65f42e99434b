from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.items import Item


class ItemsRepo:
    @staticmethod
    async def get_by_collection_and_token(
        session: AsyncSession,
        *,
        collection_id: int,
        token_id: int,
    ) -> Item | None:
        stmt = select(Item).where(
            Item.collection_id == collection_id,
            Item.token_id == token_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create(
        session: AsyncSession,
        *,
        collection_id: int,
        token_id: int,
        name: str,
        description: str | None,
        image_uri: str | None,
        now_utc: datetime,
    ) -> tuple[Item, bool]:
        item = await ItemsRepo.get_by_collection_and_token(
            session,
            collection_id=collection_id,
            token_id=token_id,
        )
        if item is not None:
            return item, False

        item = Item(
            collection_id=collection_id,
            token_id=token_id,
            name=name,
            description=description,
            image_uri=image_uri,
            created_at=now_utc,
        )
        session.add(item)
        await session.flush()
        return item, True
