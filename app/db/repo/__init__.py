from app.db.repo.collections_repo import CollectionsRepo
from app.db.repo.items_repo import ItemsRepo
from app.db.repo.loyalty_ledger_repo import LoyaltyLedgerRepo, LoyaltyTotalsRepo
from app.db.repo.loyalty_rules_repo import LoyaltyRulesRepo
from app.db.repo.nfts_repo import NftsRepo
from app.db.repo.streaks_repo import StreaksRepo
from app.db.repo.users_repo import UsersRepo

__all__ = [
    "CollectionsRepo",
    "ItemsRepo",
    "LoyaltyLedgerRepo",
    "LoyaltyRulesRepo",
    "LoyaltyTotalsRepo",
    "NftsRepo",
    "StreaksRepo",
    "UsersRepo",
]
