from app.economy.streak.service import StreakService, check_in

__all__ = ["StreakService", "check_in"]
