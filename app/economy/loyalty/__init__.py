from app.economy.loyalty.service import LoyaltyService, accrue_points

__all__ = ["LoyaltyService", "accrue_points"]
