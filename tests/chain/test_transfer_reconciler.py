from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy import func, select

from app.chain.reconciler import ZERO_ADDRESS, TransferReconciler
from app.chain.types import ReconcileOutcome
from app.db.models.items import Item
from app.db.models.nfts import NFT
from app.db.models.users import User
from tests.chain_fixtures import FakeChainProvider, fake_metadata_fetcher, transfer
from tests.loyalty_fixtures import ALICE, BOB, NOW_UTC, _create_collection


async def _amounts_by_wallet(session_factory) -> dict[str, int]:
    async with session_factory() as session:
        result = await session.execute(
            select(User.eth_wallet_address, NFT.amount).join(NFT, NFT.user_id == User.id)
        )
        return {wallet: amount for wallet, amount in result.all()}


def _reconciler(session_factory, provider: FakeChainProvider) -> TransferReconciler:
    return TransferReconciler(
        provider=provider,
        session_factory=session_factory,
        metadata_fetcher=fake_metadata_fetcher,
    )


async def test_fungible_transfer_converges_to_chain_balances(session_factory) -> None:
    collection_id = await _create_collection(session_factory, with_item_token_id=5)
    provider = FakeChainProvider(balances={(ALICE, 5): 3, (BOB, 5): 7})
    reconciler = _reconciler(session_factory, provider)

    outcome = await reconciler.handle_fungible_transfer(
        transfer(collection_id=collection_id, from_address=ALICE, to_address=BOB, amount=2),
        now_utc=NOW_UTC,
    )
    assert outcome == ReconcileOutcome.APPLIED
    assert await _amounts_by_wallet(session_factory) == {ALICE: 3, BOB: 7}

    provider.balances = {(ALICE, 5): 0, (BOB, 5): 10}
    outcome = await reconciler.handle_fungible_transfer(
        transfer(collection_id=collection_id, from_address=ALICE, to_address=BOB),
        now_utc=NOW_UTC,
    )
    assert outcome == ReconcileOutcome.APPLIED
    assert await _amounts_by_wallet(session_factory) == {ALICE: 0, BOB: 10}

    async with session_factory() as session:
        users_total = await session.scalar(select(func.count()).select_from(User))
    assert users_total == 2


async def test_fungible_transfers_converge_when_delivered_out_of_order(session_factory) -> None:
    carol = "0x4444444444444444444444444444444444444444"
    collection_id = await _create_collection(session_factory, with_item_token_id=5)
    # Chain state after ALICE -> BOB (2) and then BOB -> carol (1).
    provider = FakeChainProvider(balances={(ALICE, 5): 3, (BOB, 5): 6, (carol, 5): 1})
    reconciler = _reconciler(session_factory, provider)
    earlier = transfer(collection_id=collection_id, from_address=ALICE, to_address=BOB, amount=2)
    later = transfer(collection_id=collection_id, from_address=BOB, to_address=carol, amount=1)

    assert await reconciler.handle_fungible_transfer(later, now_utc=NOW_UTC) == ReconcileOutcome.APPLIED
    assert await _amounts_by_wallet(session_factory) == {BOB: 6, carol: 1}

    assert await reconciler.handle_fungible_transfer(earlier, now_utc=NOW_UTC) == ReconcileOutcome.APPLIED
    assert await _amounts_by_wallet(session_factory) == {ALICE: 3, BOB: 6, carol: 1}


async def test_fungible_mint_skips_zero_address(session_factory) -> None:
    collection_id = await _create_collection(session_factory, with_item_token_id=5)
    provider = FakeChainProvider(balances={(BOB, 5): 1})

    outcome = await _reconciler(session_factory, provider).handle_fungible_transfer(
        transfer(collection_id=collection_id, from_address=ZERO_ADDRESS, to_address=BOB)
    )

    assert outcome == ReconcileOutcome.APPLIED
    assert await _amounts_by_wallet(session_factory) == {BOB: 1}


async def test_missing_collection_makes_no_changes(session_factory) -> None:
    provider = FakeChainProvider(balances={(BOB, 5): 1})

    outcome = await _reconciler(session_factory, provider).handle_fungible_transfer(
        transfer(collection_id=404, from_address=ALICE, to_address=BOB)
    )

    assert outcome == ReconcileOutcome.COLLECTION_MISSING
    async with session_factory() as session:
        assert await session.scalar(select(func.count()).select_from(User)) == 0


async def test_missing_item_fails_without_partial_writes(session_factory) -> None:
    collection_id = await _create_collection(session_factory)
    provider = FakeChainProvider(balances={(BOB, 5): 1})

    outcome = await _reconciler(session_factory, provider).handle_fungible_transfer(
        transfer(collection_id=collection_id, from_address=ALICE, to_address=BOB)
    )

    assert outcome == ReconcileOutcome.FAILED
    async with session_factory() as session:
        assert await session.scalar(select(func.count()).select_from(User)) == 0
        assert await session.scalar(select(func.count()).select_from(NFT)) == 0


async def test_single_owner_transfer_creates_item_and_moves_ownership(session_factory) -> None:
    collection_id = await _create_collection(
        session_factory,
        standard="erc721",
        contract_address="0x4444444444444444444444444444444444444444",
    )
    reconciler = _reconciler(session_factory, FakeChainProvider())

    outcome = await reconciler.handle_single_owner_transfer(
        transfer(collection_id=collection_id, from_address=ALICE, to_address=BOB, token_id=9),
        now_utc=NOW_UTC,
    )

    assert outcome == ReconcileOutcome.APPLIED
    assert await _amounts_by_wallet(session_factory) == {ALICE: 0, BOB: 1}
    async with session_factory() as session:
        item = await session.scalar(select(Item).where(Item.collection_id == collection_id))
    assert item is not None
    assert (item.token_id, item.name, item.image_uri) == (9, "Token #9", "ipfs://images/9.png")

    outcome = await reconciler.handle_single_owner_transfer(
        transfer(collection_id=collection_id, from_address=BOB, to_address=ALICE, token_id=9),
        now_utc=NOW_UTC,
    )
    assert outcome == ReconcileOutcome.APPLIED
    assert await _amounts_by_wallet(session_factory) == {ALICE: 1, BOB: 0}


async def test_single_owner_transfer_reports_metadata_failure(session_factory) -> None:
    collection_id = await _create_collection(session_factory, standard="erc721")

    async def broken_fetcher(uri: str, *, token_id: int | None = None):
        raise RuntimeError("gateway timeout")

    reconciler = TransferReconciler(
        provider=FakeChainProvider(),
        session_factory=session_factory,
        metadata_fetcher=broken_fetcher,
    )

    outcome = await reconciler.handle_single_owner_transfer(
        transfer(collection_id=collection_id, from_address=ALICE, to_address=BOB)
    )

    assert outcome == ReconcileOutcome.FAILED
    async with session_factory() as session:
        assert await session.scalar(select(func.count()).select_from(Item)) == 0


async def test_reindex_updates_drifted_balances(session_factory) -> None:
    collection_id = await _create_collection(session_factory, with_item_token_id=5)
    provider = FakeChainProvider(balances={(ALICE, 5): 3, (BOB, 5): 7})
    reconciler = _reconciler(session_factory, provider)
    await reconciler.handle_fungible_transfer(
        transfer(collection_id=collection_id, from_address=ALICE, to_address=BOB)
    )

    provider.balances = {(ALICE, 5): 3, (BOB, 5): 2}
    changed = await reconciler.reindex_collection_balances(collection_id, now_utc=NOW_UTC)

    assert changed == 1
    assert await _amounts_by_wallet(session_factory) == {ALICE: 3, BOB: 2}


class _WriteTrackingFactory:
    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory
        self.open_writes = 0

    def __call__(self):
        return self._session_factory()

    @asynccontextmanager
    async def begin(self):
        self.open_writes += 1
        try:
            async with self._session_factory.begin() as session:
                yield session
        finally:
            self.open_writes -= 1


@dataclass
class _WriteAwareProvider(FakeChainProvider):
    tracker: _WriteTrackingFactory | None = None
    reads_during_write: int = 0

    async def get_balance_of(self, address, collection, token_id) -> int:
        if self.tracker is not None and self.tracker.open_writes:
            self.reads_during_write += 1
        return await super().get_balance_of(address, collection, token_id)


async def test_balance_reads_happen_outside_write_transactions(session_factory) -> None:
    collection_id = await _create_collection(session_factory, with_item_token_id=5)
    tracker = _WriteTrackingFactory(session_factory)
    provider = _WriteAwareProvider(balances={(ALICE, 5): 3, (BOB, 5): 7}, tracker=tracker)
    reconciler = TransferReconciler(
        provider=provider,
        session_factory=tracker,
        metadata_fetcher=fake_metadata_fetcher,
    )

    outcome = await reconciler.handle_fungible_transfer(
        transfer(collection_id=collection_id, from_address=ALICE, to_address=BOB),
        now_utc=NOW_UTC,
    )
    provider.balances = {(ALICE, 5): 1, (BOB, 5): 9}
    changed = await reconciler.reindex_collection_balances(collection_id, now_utc=NOW_UTC)

    assert outcome == ReconcileOutcome.APPLIED
    assert changed == 2
    assert provider.reads_during_write == 0
    assert await _amounts_by_wallet(session_factory) == {ALICE: 1, BOB: 9}
