from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from app.db.repo.loyalty_ledger_repo import LoyaltyLedgerRepo, LoyaltyTotalsRepo
from app.economy.loyalty.errors import (
    LoyaltyCodeAlreadyClaimedError,
    LoyaltyInvalidRuleTypeError,
    LoyaltyRuleAlreadyExistsError,
    LoyaltyRuleNotFoundError,
    LoyaltyUserNotFoundError,
)
from app.economy.loyalty.locks import KeyedLocks
from app.economy.loyalty.service import LoyaltyService, accrue_points
from tests.loyalty_fixtures import (
    NOW_UTC,
    OWNER_ID,
    _create_ledger_entry,
    _create_rule,
    _create_user,
)


async def _accrue(session_factory, *, user_id: int, code: str, value: str = "0", offset_minutes: int = 0):
    return await accrue_points(
        user_id=user_id,
        owner_id=OWNER_ID,
        code=code,
        received_value=Decimal(value),
        now_utc=NOW_UTC + timedelta(minutes=offset_minutes),
        session_factory=session_factory,
    )


async def test_fixed_code_accrues_twice(session_factory) -> None:
    user_id = await _create_user(session_factory)
    await _create_rule(session_factory, code="WELCOME10", value="10", rule_type="FIXED")

    first = await _accrue(session_factory, user_id=user_id, code="WELCOME10")
    second = await _accrue(session_factory, user_id=user_id, code="WELCOME10", offset_minutes=1)

    assert (first.points_added, first.total_points) == (Decimal("10.00"), Decimal("10.00"))
    assert (second.points_added, second.total_points) == (Decimal("10.00"), Decimal("20.00"))

    async with session_factory() as session:
        entries = await LoyaltyService.list_transactions(session, user_id=user_id, owner_id=OWNER_ID)
    assert [entry.id for entry in entries] == [second.transaction_id, first.transaction_id]
    assert {entry.status for entry in entries} == {"success"}


async def test_one_time_code_is_claimed_once(session_factory) -> None:
    user_id = await _create_user(session_factory)
    await _create_rule(session_factory, code="SIGNUP", value="50", rule_type="ONE_FIXED")

    await _accrue(session_factory, user_id=user_id, code="SIGNUP")
    with pytest.raises(LoyaltyCodeAlreadyClaimedError) as exc_info:
        await _accrue(session_factory, user_id=user_id, code="SIGNUP", offset_minutes=1)

    assert exc_info.value.message == "Loyalty code already claimed"
    async with session_factory() as session:
        entries = await LoyaltyService.list_transactions(session, user_id=user_id, owner_id=OWNER_ID)
        total = await LoyaltyService.get_total_points(session, user_id=user_id, owner_id=OWNER_ID)
    assert len(entries) == 1
    assert total == Decimal("50.00")


async def test_concurrent_one_time_claims_yield_single_success(session_factory) -> None:
    user_id = await _create_user(session_factory)
    await _create_rule(session_factory, code="DROP", value="5", rule_type="ONE_VARIABLE")
    locks = KeyedLocks()

    results = await asyncio.gather(
        *[
            accrue_points(
                user_id=user_id,
                owner_id=OWNER_ID,
                code="DROP",
                received_value=Decimal("100"),
                now_utc=NOW_UTC,
                session_factory=session_factory,
                locks=locks,
            )
            for _ in range(5)
        ],
        return_exceptions=True,
    )

    successes = [result for result in results if not isinstance(result, Exception)]
    rejections = [result for result in results if isinstance(result, LoyaltyCodeAlreadyClaimedError)]
    assert len(successes) == 1
    assert len(rejections) == 4
    assert successes[0].total_points == Decimal("20.00")
    assert len(locks) == 0


async def test_total_matches_ledger_sum_after_mixed_operations(session_factory) -> None:
    user_id = await _create_user(session_factory)
    await _create_rule(session_factory, code="ADD", value="0", rule_type="ADMIN_ADD")
    await _create_rule(session_factory, code="SUB", value="0", rule_type="ADMIN_SUBTRACT")
    await _create_rule(session_factory, code="SPEND", value="4", rule_type="VARIABLE")

    await _accrue(session_factory, user_id=user_id, code="ADD", value="30")
    await _accrue(session_factory, user_id=user_id, code="SPEND", value="10", offset_minutes=1)
    await _accrue(session_factory, user_id=user_id, code="SUB", value="7.25", offset_minutes=2)

    async with session_factory() as session:
        ledger_sum = await LoyaltyLedgerRepo.sum_points(session, user_id=user_id, owner_id=OWNER_ID)
        total = await LoyaltyService.get_total_points(session, user_id=user_id, owner_id=OWNER_ID)
    assert total == Decimal("25.25")
    assert ledger_sum == total


async def test_admin_subtract_is_floored_at_current_total(session_factory) -> None:
    user_id = await _create_user(session_factory)
    await _create_rule(session_factory, code="ADD", value="0", rule_type="ADMIN_ADD")
    await _create_rule(session_factory, code="SUB", value="0", rule_type="ADMIN_SUBTRACT")

    await _accrue(session_factory, user_id=user_id, code="ADD", value="30")
    result = await _accrue(session_factory, user_id=user_id, code="SUB", value="50", offset_minutes=1)

    assert result.points_added == Decimal("-30.00")
    assert result.total_points == Decimal("0.00")


async def test_subtract_without_balance_records_failed_entry(session_factory) -> None:
    user_id = await _create_user(session_factory)
    await _create_rule(session_factory, code="SUB", value="0", rule_type="ADMIN_SUBTRACT")

    result = await _accrue(session_factory, user_id=user_id, code="SUB", value="10")

    assert result.points_added == Decimal("0.00")
    async with session_factory() as session:
        entries = await LoyaltyService.list_transactions(session, user_id=user_id, owner_id=OWNER_ID)
        total_row = await LoyaltyTotalsRepo.get(session, user_id=user_id, owner_id=OWNER_ID)
    assert [entry.status for entry in entries] == ["failed"]
    assert total_row is not None
    assert Decimal(str(total_row.total_points)) == Decimal("0")


async def test_unknown_code_and_user_are_rejected(session_factory) -> None:
    user_id = await _create_user(session_factory)
    await _create_rule(session_factory, code="FIXED", value="1", rule_type="FIXED")

    with pytest.raises(LoyaltyRuleNotFoundError) as exc_info:
        await _accrue(session_factory, user_id=user_id, code="MISSING")
    assert exc_info.value.status_code == 404

    with pytest.raises(LoyaltyUserNotFoundError):
        await _accrue(session_factory, user_id=user_id + 100, code="FIXED")


async def test_invalid_rule_type_writes_nothing(session_factory) -> None:
    user_id = await _create_user(session_factory)
    await _create_rule(session_factory, code="REF", value="5", rule_type="REFERRAL")

    with pytest.raises(LoyaltyInvalidRuleTypeError):
        await _accrue(session_factory, user_id=user_id, code="REF")

    async with session_factory() as session:
        entries = await LoyaltyService.list_transactions(session, user_id=user_id, owner_id=OWNER_ID)
        total = await LoyaltyService.get_total_points(session, user_id=user_id, owner_id=OWNER_ID)
    assert entries == []
    assert total == Decimal("0.00")


async def test_leaderboard_ranks_successful_points_in_window(session_factory) -> None:
    alice = await _create_user(session_factory)
    bob = await _create_user(session_factory)
    carol = await _create_user(session_factory)

    await _create_ledger_entry(session_factory, user_id=alice, points="15", created_at=NOW_UTC - timedelta(hours=2))
    await _create_ledger_entry(session_factory, user_id=bob, points="40", created_at=NOW_UTC - timedelta(days=3))
    await _create_ledger_entry(session_factory, user_id=carol, points="25", created_at=NOW_UTC - timedelta(hours=5))
    await _create_ledger_entry(
        session_factory,
        user_id=alice,
        points="100",
        created_at=NOW_UTC - timedelta(hours=1),
        status="failed",
    )
    await _create_ledger_entry(session_factory, user_id=alice, points="60", created_at=NOW_UTC - timedelta(days=20))

    async with session_factory() as session:
        daily = await LoyaltyService.get_leaderboard(
            session, owner_id=OWNER_ID, period="daily", now_utc=NOW_UTC
        )
        weekly = await LoyaltyService.get_leaderboard(
            session, owner_id=OWNER_ID, period="weekly", now_utc=NOW_UTC
        )
        monthly_page = await LoyaltyService.get_leaderboard(
            session, owner_id=OWNER_ID, period="monthly", now_utc=NOW_UTC, limit=2, offset=1
        )

    assert [(entry.user_id, entry.total_points, entry.rank) for entry in daily] == [
        (carol, Decimal("25.00"), 1),
        (alice, Decimal("15.00"), 2),
    ]
    assert [entry.user_id for entry in weekly] == [bob, carol, alice]
    assert [(entry.user_id, entry.rank) for entry in monthly_page] == [(bob, 2), (carol, 3)]


async def test_rule_administration(session_factory) -> None:
    async with session_factory.begin() as session:
        created = await LoyaltyService.create_rule(
            session,
            owner_id=OWNER_ID,
            code="BONUS",
            value=Decimal("12.345"),
            rule_type="FIXED",
            now_utc=NOW_UTC,
        )
    assert created.value == Decimal("12.35")

    with pytest.raises(LoyaltyRuleAlreadyExistsError):
        async with session_factory.begin() as session:
            await LoyaltyService.create_rule(
                session,
                owner_id=OWNER_ID,
                code="BONUS",
                value=Decimal("1"),
                rule_type="FIXED",
                now_utc=NOW_UTC,
            )

    with pytest.raises(LoyaltyInvalidRuleTypeError):
        async with session_factory.begin() as session:
            await LoyaltyService.update_rule(
                session,
                owner_id=OWNER_ID,
                code="BONUS",
                value=None,
                rule_type="NOPE",
                now_utc=NOW_UTC,
            )

    async with session_factory.begin() as session:
        updated = await LoyaltyService.update_rule(
            session,
            owner_id=OWNER_ID,
            code="BONUS",
            value=Decimal("20"),
            rule_type="ONE_FIXED",
            now_utc=NOW_UTC + timedelta(minutes=1),
        )
    assert (updated.type, updated.value) == ("ONE_FIXED", Decimal("20.00"))

    async with session_factory.begin() as session:
        await LoyaltyService.delete_rule(session, owner_id=OWNER_ID, code="BONUS")

    with pytest.raises(LoyaltyRuleNotFoundError):
        async with session_factory() as session:
            await LoyaltyService.resolve_rule(session, owner_id=OWNER_ID, code="BONUS")
