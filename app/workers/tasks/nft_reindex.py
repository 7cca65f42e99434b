from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.chain.providers import ChainProvider, Web3ChainProvider
from app.chain.reconciler import TransferReconciler
from app.chain.types import Standard
from app.core.config import get_settings
from app.db.repo.collections_repo import CollectionsRepo
from app.db.session import SessionLocal
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)


def _clamp_schedule_seconds(value: int) -> int:
    return max(60, min(86400, int(value)))


async def run_nft_balance_reindex_async(
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    provider: ChainProvider | None = None,
) -> dict[str, int]:
    factory = session_factory or SessionLocal
    chain_provider = provider or Web3ChainProvider.from_settings(get_settings())
    reconciler = TransferReconciler(provider=chain_provider, session_factory=factory)

    async with factory() as session:
        collections = await CollectionsRepo.list_by_standard(session, standard=Standard.ERC1155.value)
    collection_ids = [
        collection.id
        for collection in collections
        if chain_provider.supports_event_stream(collection.chain_type)
    ]

    result = {"collections": 0, "failed_collections": 0, "changed_holdings": 0}
    try:
        for collection_id in collection_ids:
            try:
                changed = await reconciler.reindex_collection_balances(collection_id)
            except Exception:
                logger.exception("nft_balance_reindex_collection_failed", collection_id=collection_id)
                result["failed_collections"] += 1
                continue
            result["collections"] += 1
            result["changed_holdings"] += changed
    finally:
        if provider is None:
            await chain_provider.close()

    logger.info("nft_balance_reindex_finished", **result)
    return result


@celery_app.task(name="app.workers.tasks.nft_reindex.run_nft_balance_reindex")
def run_nft_balance_reindex() -> dict[str, int]:
    return run_async_job(run_nft_balance_reindex_async(), job="nft_balance_reindex")


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "nft-balance-reindex": {
            "task": "app.workers.tasks.nft_reindex.run_nft_balance_reindex",
            "schedule": float(_clamp_schedule_seconds(get_settings().nft_reindex_schedule_seconds)),
            "options": {"queue": "q_low"},
        },
    }
)
