from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.items import Item
from app.db.models.nfts import NFT
from app.db.models.users import User


class NftsRepo:
    @staticmethod
    async def get_by_user_and_item(
        session: AsyncSession,
        *,
        user_id: int,
        item_id: int,
    ) -> NFT | None:
        stmt = select(NFT).where(NFT.user_id == user_id, NFT.item_id == item_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def set_amount(
        session: AsyncSession,
        *,
        user_id: int,
        item_id: int,
        amount: int,
        now_utc: datetime,
    ) -> NFT:
        if amount < 0:
            raise ValueError("nft amount must not be negative")

        nft = await NftsRepo.get_by_user_and_item(session, user_id=user_id, item_id=item_id)
        if nft is None:
            nft = NFT(user_id=user_id, item_id=item_id, amount=amount, updated_at=now_utc)
            session.add(nft)
        else:
            nft.amount = amount
            nft.updated_at = now_utc
        await session.flush()
        return nft

    @staticmethod
    async def list_holdings_for_collection(
        session: AsyncSession,
        *,
        collection_id: int,
    ) -> list[tuple[NFT, Item, User]]:
        stmt = (
            select(NFT, Item, User)
            .join(Item, Item.id == NFT.item_id)
            .join(User, User.id == NFT.user_id)
            .where(
                Item.collection_id == collection_id,
                User.eth_wallet_address.is_not(None),
            )
            .order_by(NFT.id.asc())
        )
        result = await session.execute(stmt)
        return [(nft, item, user) for nft, item, user in result.all()]
