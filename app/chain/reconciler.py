from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.chain.errors import CollectionNotFoundError, ItemNotFoundError
from app.chain.metadata import fetch_token_metadata
from app.chain.providers import ChainProvider
from app.chain.types import CollectionRef, ReconcileOutcome, TokenMetadata, TransferEvent
from app.db.models.collections import Collection
from app.db.repo.collections_repo import CollectionsRepo
from app.db.repo.items_repo import ItemsRepo
from app.db.repo.nfts_repo import NftsRepo
from app.db.repo.users_repo import UsersRepo, normalize_wallet_address

logger = structlog.get_logger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MetadataFetcher = Callable[..., Awaitable[TokenMetadata]]


def to_collection_ref(collection: Collection) -> CollectionRef:
    return CollectionRef(
        id=collection.id,
        chain_type=collection.chain_type,
        chain_id=collection.chain_id,
        contract_address=collection.contract_address,
        standard=collection.standard,
    )


def _holder_addresses(event: TransferEvent) -> list[str]:
    # Mints and burns use the zero address, which never holds tokens.
    addresses: list[str] = []
    for address in (event.from_address, event.to_address):
        normalized = normalize_wallet_address(address)
        if normalized == ZERO_ADDRESS or normalized in addresses:
            continue
        addresses.append(normalized)
    return addresses


class TransferReconciler:
    def __init__(
        self,
        *,
        provider: ChainProvider,
        session_factory: async_sessionmaker[AsyncSession],
        metadata_fetcher: MetadataFetcher = fetch_token_metadata,
    ) -> None:
        self._provider = provider
        self._session_factory = session_factory
        self._metadata_fetcher = metadata_fetcher

    async def handle_fungible_transfer(
        self,
        event: TransferEvent,
        *,
        now_utc: datetime | None = None,
    ) -> ReconcileOutcome:
        """Sets each party's NFT amount to the on-chain balance after the transfer."""
        moment = now_utc or datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session:
                collection = await CollectionsRepo.get_by_id(session, event.collection_id)
                item = None
                if collection is not None:
                    item = await ItemsRepo.get_by_collection_and_token(
                        session,
                        collection_id=collection.id,
                        token_id=event.token_id,
                    )
            if collection is None:
                logger.warning("transfer_collection_missing", collection_id=event.collection_id)
                return ReconcileOutcome.COLLECTION_MISSING
            if item is None:
                raise ItemNotFoundError(
                    context={"collection_id": collection.id, "token_id": event.token_id}
                )
            ref = to_collection_ref(collection)

            # Balance reads happen before the write transaction opens.
            balances = {
                address: max(await self._provider.get_balance_of(address, ref, event.token_id), 0)
                for address in _holder_addresses(event)
            }

            async with self._session_factory.begin() as session:
                for address, balance in balances.items():
                    user, _ = await UsersRepo.get_or_create_by_wallet_address(
                        session,
                        address=address,
                        now_utc=moment,
                    )
                    await NftsRepo.set_amount(
                        session,
                        user_id=user.id,
                        item_id=item.id,
                        amount=balance,
                        now_utc=moment,
                    )
        except Exception:
            logger.exception(
                "transfer_reconcile_failed",
                collection_id=event.collection_id,
                token_id=event.token_id,
                standard="erc1155",
            )
            return ReconcileOutcome.FAILED

        logger.info(
            "transfer_reconciled",
            collection_id=event.collection_id,
            token_id=event.token_id,
            amount=event.amount,
            standard="erc1155",
        )
        return ReconcileOutcome.APPLIED

    async def handle_single_owner_transfer(
        self,
        event: TransferEvent,
        *,
        now_utc: datetime | None = None,
    ) -> ReconcileOutcome:
        moment = now_utc or datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session:
                collection = await CollectionsRepo.get_by_id(session, event.collection_id)
            if collection is None:
                logger.warning("transfer_collection_missing", collection_id=event.collection_id)
                return ReconcileOutcome.COLLECTION_MISSING
            ref = to_collection_ref(collection)

            # Chain and HTTP reads happen before the write transaction opens.
            uri = await self._provider.get_token_uri(ref, event.token_id)
            metadata = await self._metadata_fetcher(uri, token_id=event.token_id)

            async with self._session_factory.begin() as session:
                item, _ = await ItemsRepo.get_or_create(
                    session,
                    collection_id=ref.id,
                    token_id=event.token_id,
                    name=metadata.name,
                    description=metadata.description,
                    image_uri=metadata.image,
                    now_utc=moment,
                )
                sender = normalize_wallet_address(event.from_address)
                recipient = normalize_wallet_address(event.to_address)
                for address, amount in ((sender, 0), (recipient, 1)):
                    if address == ZERO_ADDRESS:
                        continue
                    user, _ = await UsersRepo.get_or_create_by_wallet_address(
                        session,
                        address=address,
                        now_utc=moment,
                    )
                    await NftsRepo.set_amount(
                        session,
                        user_id=user.id,
                        item_id=item.id,
                        amount=amount,
                        now_utc=moment,
                    )
        except Exception:
            logger.exception(
                "transfer_reconcile_failed",
                collection_id=event.collection_id,
                token_id=event.token_id,
                standard="erc721",
            )
            return ReconcileOutcome.FAILED

        logger.info(
            "transfer_reconciled",
            collection_id=event.collection_id,
            token_id=event.token_id,
            standard="erc721",
        )
        return ReconcileOutcome.APPLIED

    async def reindex_collection_balances(
        self,
        collection_id: int,
        *,
        now_utc: datetime | None = None,
    ) -> int:
        """Re-reads balanceOf for every stored holding of the collection.

        Returns the number of rows whose amount changed.
        """
        moment = now_utc or datetime.now(timezone.utc)
        async with self._session_factory() as session:
            collection = await CollectionsRepo.get_by_id(session, collection_id)
            if collection is None:
                raise CollectionNotFoundError(context={"collection_id": collection_id})
            ref = to_collection_ref(collection)
            holdings = [
                (nft.user_id, nft.item_id, nft.id, user.eth_wallet_address or "", item.token_id)
                for nft, item, user in await NftsRepo.list_holdings_for_collection(
                    session,
                    collection_id=collection_id,
                )
            ]

        balances: dict[tuple[int, int], int] = {}
        for user_id, item_id, nft_id, address, token_id in holdings:
            try:
                balance = await self._provider.get_balance_of(address, ref, token_id)
            except Exception:
                logger.exception(
                    "nft_balance_reindex_row_failed",
                    collection_id=collection_id,
                    nft_id=nft_id,
                )
                continue
            balances[(user_id, item_id)] = max(balance, 0)

        changed = 0
        async with self._session_factory.begin() as session:
            for (user_id, item_id), balance in balances.items():
                nft = await NftsRepo.get_by_user_and_item(session, user_id=user_id, item_id=item_id)
                if nft is None or nft.amount == balance:
                    continue
                nft.amount = balance
                nft.updated_at = moment
                changed += 1
            await session.flush()

        logger.info(
            "nft_balance_reindex_completed",
            collection_id=collection_id,
            holdings=len(holdings),
            changed=changed,
        )
        return changed
