from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.chain.providers import ChainProvider
from app.chain.reconciler import TransferReconciler, to_collection_ref
from app.chain.types import CollectionRef, ListenerSummary, ReconcileOutcome, Standard, TransferEvent
from app.db.repo.collections_repo import CollectionsRepo

logger = structlog.get_logger(__name__)


class ChainListenerRegistry:
    """Holds at most one transfer subscription per collection id."""

    def __init__(
        self,
        *,
        provider: ChainProvider,
        reconciler: TransferReconciler,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._provider = provider
        self._reconciler = reconciler
        self._session_factory = session_factory
        self._listeners: dict[int, Any] = {}

    @property
    def collection_ids(self) -> list[int]:
        return sorted(self._listeners)

    def has_listener(self, collection_id: int) -> bool:
        return collection_id in self._listeners

    def _handler_for(self, collection: CollectionRef):
        async def handle(event: TransferEvent) -> ReconcileOutcome:
            if collection.standard == Standard.ERC1155.value:
                outcome = await self._reconciler.handle_fungible_transfer(event)
            else:
                outcome = await self._reconciler.handle_single_owner_transfer(event)
            if outcome == ReconcileOutcome.COLLECTION_MISSING:
                await self.remove(event.collection_id)
            return outcome

        return handle

    async def install(self, collection: CollectionRef) -> bool:
        if not self._provider.supports_event_stream(collection.chain_type):
            logger.info(
                "chain_listener_skipped",
                collection_id=collection.id,
                chain_type=collection.chain_type,
            )
            return False

        subscription = await self._provider.subscribe_transfers(
            collection,
            self._handler_for(collection),
        )
        previous = self._listeners.pop(collection.id, None)
        self._listeners[collection.id] = subscription
        if previous is not None:
            await self._provider.unsubscribe(previous)

        logger.info(
            "chain_listener_installed",
            collection_id=collection.id,
            chain_type=collection.chain_type,
            chain_id=collection.chain_id,
            standard=collection.standard,
        )
        return True

    async def remove(self, collection_id: int) -> bool:
        subscription = self._listeners.pop(collection_id, None)
        if subscription is None:
            return False
        await self._provider.unsubscribe(subscription)
        logger.info("chain_listener_removed", collection_id=collection_id)
        return True

    async def reset(self, collection_id: int) -> bool:
        await self.remove(collection_id)
        async with self._session_factory() as session:
            collection = await CollectionsRepo.get_by_id(session, collection_id)
        if collection is None:
            logger.info("chain_listener_reset_collection_missing", collection_id=collection_id)
            return False
        return await self.install(to_collection_ref(collection))

    async def install_all(self) -> dict[str, int]:
        async with self._session_factory() as session:
            collections = [to_collection_ref(row) for row in await CollectionsRepo.list_all(session)]

        summary = ListenerSummary()
        for collection in collections:
            try:
                installed = await self.install(collection)
            except Exception:
                logger.exception(
                    "chain_listener_install_failed",
                    collection_id=collection.id,
                    chain_type=collection.chain_type,
                )
                summary.failed += 1
                continue
            if installed:
                summary.installed += 1
            else:
                summary.skipped += 1

        logger.info("chain_listeners_refreshed", **summary.as_dict())
        return summary.as_dict()

    async def reset_all(self) -> dict[str, int]:
        for collection_id in list(self._listeners):
            await self.remove(collection_id)
        return await self.install_all()

    async def close(self) -> None:
        for collection_id in list(self._listeners):
            await self.remove(collection_id)
        await self._provider.close()
