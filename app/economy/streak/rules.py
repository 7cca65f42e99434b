from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from app.economy.streak.time import hours_between
from app.economy.streak.types import CheckInDecision, CheckInTransition, StreakSnapshot

CHECK_IN_COOLDOWN_HOURS = 24
STREAK_BREAK_HOURS = 48


def apply_check_in(snapshot: StreakSnapshot | None, *, now_utc: datetime) -> CheckInDecision:
    if snapshot is None:
        return CheckInDecision(
            transition=CheckInTransition.STARTED,
            snapshot=StreakSnapshot(streak_count=1, last_check_in=now_utc),
        )

    elapsed = hours_between(snapshot.last_check_in, now_utc)
    if elapsed < CHECK_IN_COOLDOWN_HOURS:
        return CheckInDecision(transition=CheckInTransition.TOO_EARLY, snapshot=None)

    if elapsed < STREAK_BREAK_HOURS:
        return CheckInDecision(
            transition=CheckInTransition.CONTINUED,
            snapshot=replace(
                snapshot,
                streak_count=snapshot.streak_count + 1,
                last_check_in=now_utc,
            ),
        )

    return CheckInDecision(
        transition=CheckInTransition.RESET,
        snapshot=replace(snapshot, streak_count=1, last_check_in=now_utc),
    )
