from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class CheckInTransition(str, Enum):
    STARTED = "STARTED"
    CONTINUED = "CONTINUED"
    RESET = "RESET"
    TOO_EARLY = "TOO_EARLY"


@dataclass(slots=True)
class StreakSnapshot:
    streak_count: int
    last_check_in: datetime


@dataclass(slots=True)
class CheckInDecision:
    transition: CheckInTransition
    snapshot: StreakSnapshot | None


@dataclass(slots=True)
class CheckInResult:
    streak_count: int
    points_awarded_ok: bool
    points_added: Decimal | None
    total_points: Decimal | None
