from app.db.models.collections import Collection
from app.db.models.items import Item
from app.db.models.loyalty_rules import LoyaltyRule
from app.db.models.loyalty_transactions import LoyaltyTransaction
from app.db.models.nfts import NFT
from app.db.models.streaks import Streak
from app.db.models.user_loyalty_totals import UserLoyaltyTotal
from app.db.models.users import User

__all__ = [
    "Collection",
    "Item",
    "LoyaltyRule",
    "LoyaltyTransaction",
    "NFT",
    "Streak",
    "User",
    "UserLoyaltyTotal",
]
