from app.workers.tasks.nft_reindex import run_nft_balance_reindex

__all__ = ["run_nft_balance_reindex"]
