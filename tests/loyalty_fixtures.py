from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models.collections import Collection
from app.db.models.items import Item
from app.db.models.loyalty_rules import LoyaltyRule
from app.db.models.loyalty_transactions import LoyaltyTransaction
from app.db.models.users import User

UTC = timezone.utc
NOW_UTC = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
OWNER_ID = 7
ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"


async def _create_user(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    wallet: str | None = None,
) -> int:
    async with session_factory.begin() as session:
        user = User(eth_wallet_address=wallet, created_at=NOW_UTC)
        session.add(user)
        await session.flush()
        return user.id


async def _create_rule(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    code: str,
    value: str,
    rule_type: str,
    owner_id: int = OWNER_ID,
) -> None:
    async with session_factory.begin() as session:
        session.add(
            LoyaltyRule(
                owner_id=owner_id,
                code=code,
                value=Decimal(value),
                type=rule_type,
                created_at=NOW_UTC,
                updated_at=NOW_UTC,
            )
        )


async def _create_ledger_entry(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    user_id: int,
    points: str,
    created_at: datetime,
    status: str = "success",
    owner_id: int = OWNER_ID,
) -> None:
    async with session_factory.begin() as session:
        session.add(
            LoyaltyTransaction(
                user_id=user_id,
                owner_id=owner_id,
                code="seed",
                points=Decimal(points),
                type="ADMIN_ADD",
                status=status,
                created_at=created_at,
            )
        )


async def _create_collection(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    standard: str = "erc1155",
    chain_type: str = "ethereum",
    chain_id: int = 1,
    contract_address: str = "0x3333333333333333333333333333333333333333",
    with_item_token_id: int | None = None,
) -> int:
    async with session_factory.begin() as session:
        collection = Collection(
            owner_id=OWNER_ID,
            name="Members",
            chain_type=chain_type,
            chain_id=chain_id,
            contract_address=contract_address,
            standard=standard,
            created_at=NOW_UTC,
        )
        session.add(collection)
        await session.flush()
        if with_item_token_id is not None:
            session.add(
                Item(
                    collection_id=collection.id,
                    token_id=with_item_token_id,
                    name="Gold pass",
                    description=None,
                    image_uri=None,
                    created_at=NOW_UTC,
                )
            )
            await session.flush()
        return collection.id
