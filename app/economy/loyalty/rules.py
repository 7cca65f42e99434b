from __future__ import annotations

import calendar
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.economy.loyalty.errors import (
    LoyaltyInvalidPeriodError,
    LoyaltyInvalidRuleError,
    LoyaltyInvalidRuleTypeError,
)
from app.economy.loyalty.types import (
    ONE_TIME_TYPES,
    LeaderboardPeriod,
    LeaderboardWindow,
    LoyaltyRuleSnapshot,
    LoyaltyType,
    TransactionStatus,
)

POINTS_QUANTUM = Decimal("0.01")
ZERO_POINTS = Decimal("0.00")
# Largest magnitude a Numeric(12, 2) points column holds.
MAX_POINTS = Decimal("9999999999.99")


def quantize_points(value: Decimal) -> Decimal:
    return value.quantize(POINTS_QUANTUM, rounding=ROUND_HALF_UP)


def parse_rule_type(raw: str) -> LoyaltyType:
    try:
        return LoyaltyType(raw)
    except ValueError as exc:
        raise LoyaltyInvalidRuleTypeError(context={"type": raw}) from exc


def is_one_time(rule: LoyaltyRuleSnapshot) -> bool:
    return parse_rule_type(rule.rule_type) in ONE_TIME_TYPES


def compute_points_delta(
    rule: LoyaltyRuleSnapshot,
    *,
    received_value: Decimal,
    current_total: Decimal | None,
) -> Decimal:
    """Signed points for one accrual of ``rule``.

    Variable rules divide the caller-supplied amount by the rule value, so a rule
    value of 10 turns a purchase of 250 into 25 points. Subtractions never take the
    balance below zero.
    """
    try:
        delta = _raw_points_delta(rule, received_value=received_value, current_total=current_total)
    except InvalidOperation as exc:
        raise LoyaltyInvalidRuleError(context={"code": rule.code, "reason": "out_of_range"}) from exc
    if abs(delta) > MAX_POINTS:
        raise LoyaltyInvalidRuleError(context={"code": rule.code, "reason": "out_of_range"})
    return delta


def _raw_points_delta(
    rule: LoyaltyRuleSnapshot,
    *,
    received_value: Decimal,
    current_total: Decimal | None,
) -> Decimal:
    rule_type = parse_rule_type(rule.rule_type)

    if rule_type in {LoyaltyType.ONE_FIXED, LoyaltyType.FIXED}:
        return quantize_points(rule.value)

    if rule_type in {LoyaltyType.ONE_VARIABLE, LoyaltyType.VARIABLE}:
        if rule.value == 0:
            raise LoyaltyInvalidRuleError(context={"code": rule.code})
        return quantize_points(received_value / rule.value)

    if rule_type == LoyaltyType.ADMIN_ADD:
        return quantize_points(received_value)

    if rule_type == LoyaltyType.ADMIN_SUBTRACT:
        available = current_total if current_total is not None else ZERO_POINTS
        return -quantize_points(min(received_value, max(available, ZERO_POINTS)))

    raise LoyaltyInvalidRuleTypeError(context={"type": rule.rule_type})


def status_for_delta(delta: Decimal) -> TransactionStatus:
    if delta == 0:
        return TransactionStatus.FAILED
    return TransactionStatus.SUCCESS


def _months_back(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def leaderboard_window(period: str, *, now_utc: datetime) -> LeaderboardWindow:
    try:
        parsed = LeaderboardPeriod(period)
    except ValueError as exc:
        raise LoyaltyInvalidPeriodError(context={"period": period}) from exc

    if parsed == LeaderboardPeriod.DAILY:
        since = now_utc - timedelta(days=1)
    elif parsed == LeaderboardPeriod.WEEKLY:
        since = now_utc - timedelta(days=7)
    else:
        since = _months_back(now_utc, 1)
    return LeaderboardWindow(since_utc=since, until_utc=now_utc)
