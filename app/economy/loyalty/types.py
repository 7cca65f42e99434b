from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class LoyaltyType(str, Enum):
    ONE_FIXED = "ONE_FIXED"
    FIXED = "FIXED"
    ONE_VARIABLE = "ONE_VARIABLE"
    VARIABLE = "VARIABLE"
    ADMIN_ADD = "ADMIN_ADD"
    ADMIN_SUBTRACT = "ADMIN_SUBTRACT"
    REFERRAL = "REFERRAL"
    REDEEM = "REDEEM"


ONE_TIME_TYPES = frozenset({LoyaltyType.ONE_FIXED, LoyaltyType.ONE_VARIABLE})


class TransactionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class LeaderboardPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(slots=True)
class LoyaltyRuleSnapshot:
    owner_id: int
    code: str
    value: Decimal
    rule_type: str


@dataclass(slots=True)
class LoyaltyAccrualResult:
    points_added: Decimal
    total_points: Decimal
    transaction_id: int


@dataclass(slots=True)
class LeaderboardEntry:
    user_id: int
    total_points: Decimal
    rank: int


@dataclass(slots=True)
class LeaderboardWindow:
    since_utc: datetime
    until_utc: datetime
