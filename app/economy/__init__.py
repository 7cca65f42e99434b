from app.economy.loyalty import LoyaltyService
from app.economy.streak import StreakService

__all__ = [
    "LoyaltyService",
    "StreakService",
]
