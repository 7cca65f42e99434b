from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models.loyalty_rules import LoyaltyRule
from app.db.models.loyalty_transactions import LoyaltyTransaction
from app.db.repo.loyalty_ledger_repo import LoyaltyLedgerRepo, LoyaltyTotalsRepo
from app.db.repo.loyalty_rules_repo import LoyaltyRulesRepo
from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.economy.loyalty.errors import (
    LoyaltyCodeAlreadyClaimedError,
    LoyaltyInfrastructureError,
    LoyaltyRuleAlreadyExistsError,
    LoyaltyRuleNotFoundError,
    LoyaltyUserNotFoundError,
)
from app.economy.loyalty.locks import KeyedLocks, accrual_locks
from app.economy.loyalty.rules import (
    ZERO_POINTS,
    compute_points_delta,
    is_one_time,
    leaderboard_window,
    parse_rule_type,
    quantize_points,
    status_for_delta,
)
from app.economy.loyalty.types import (
    LeaderboardEntry,
    LoyaltyAccrualResult,
    LoyaltyRuleSnapshot,
)

logger = structlog.get_logger(__name__)

LEADERBOARD_DEFAULT_LIMIT = 100


class LoyaltyService:
    @staticmethod
    def _snapshot_from_model(rule: LoyaltyRule) -> LoyaltyRuleSnapshot:
        return LoyaltyRuleSnapshot(
            owner_id=rule.owner_id,
            code=rule.code,
            value=Decimal(str(rule.value)),
            rule_type=rule.type,
        )

    @staticmethod
    async def resolve_rule(session: AsyncSession, *, owner_id: int, code: str) -> LoyaltyRule:
        rule = await LoyaltyRulesRepo.get_by_owner_and_code(session, owner_id=owner_id, code=code)
        if rule is None:
            raise LoyaltyRuleNotFoundError(context={"owner_id": owner_id, "code": code})
        return rule

    @staticmethod
    async def accrue(
        session: AsyncSession,
        *,
        user_id: int,
        owner_id: int,
        code: str,
        received_value: Decimal,
        now_utc: datetime,
    ) -> LoyaltyAccrualResult:
        """Appends one ledger entry for ``code`` and refreshes the stored total.

        Must run inside the caller's transaction; the total row is locked for the
        remainder of it.
        """
        rule = await LoyaltyService.resolve_rule(session, owner_id=owner_id, code=code)
        snapshot = LoyaltyService._snapshot_from_model(rule)

        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise LoyaltyUserNotFoundError(context={"user_id": user_id})

        current = await LoyaltyTotalsRepo.get_for_update(session, user_id=user_id, owner_id=owner_id)

        if is_one_time(snapshot):
            prior = await LoyaltyLedgerRepo.get_first_by_code(
                session,
                user_id=user_id,
                owner_id=owner_id,
                code=code,
            )
            if prior is not None:
                raise LoyaltyCodeAlreadyClaimedError(
                    context={"user_id": user_id, "owner_id": owner_id, "code": code}
                )

        delta = compute_points_delta(
            snapshot,
            received_value=received_value,
            current_total=None if current is None else Decimal(str(current.total_points)),
        )
        entry = await LoyaltyLedgerRepo.create(
            session,
            entry=LoyaltyTransaction(
                user_id=user_id,
                owner_id=owner_id,
                code=code,
                points=delta,
                type=snapshot.rule_type,
                status=status_for_delta(delta).value,
                created_at=now_utc,
            ),
        )

        total_points = quantize_points(
            await LoyaltyLedgerRepo.sum_points(session, user_id=user_id, owner_id=owner_id)
        )
        await LoyaltyTotalsRepo.upsert(
            session,
            user_id=user_id,
            owner_id=owner_id,
            total_points=total_points,
            now_utc=now_utc,
        )

        logger.info(
            "loyalty_points_accrued",
            user_id=user_id,
            owner_id=owner_id,
            code=code,
            rule_type=snapshot.rule_type,
            points_added=str(delta),
            total_points=str(total_points),
        )
        return LoyaltyAccrualResult(
            points_added=delta,
            total_points=total_points,
            transaction_id=entry.id,
        )

    @staticmethod
    async def get_total_points(session: AsyncSession, *, user_id: int, owner_id: int) -> Decimal:
        total = await LoyaltyTotalsRepo.get(session, user_id=user_id, owner_id=owner_id)
        if total is None:
            return ZERO_POINTS
        return quantize_points(Decimal(str(total.total_points)))

    @staticmethod
    async def list_transactions(
        session: AsyncSession,
        *,
        user_id: int,
        owner_id: int,
    ) -> list[LoyaltyTransaction]:
        return await LoyaltyLedgerRepo.list_for_user(session, user_id=user_id, owner_id=owner_id)

    @staticmethod
    async def get_leaderboard(
        session: AsyncSession,
        *,
        owner_id: int,
        period: str,
        now_utc: datetime,
        limit: int = LEADERBOARD_DEFAULT_LIMIT,
        offset: int = 0,
    ) -> list[LeaderboardEntry]:
        window = leaderboard_window(period, now_utc=now_utc)
        rows = await LoyaltyLedgerRepo.sum_success_points_by_user(
            session,
            owner_id=owner_id,
            since_utc=window.since_utc,
            until_utc=window.until_utc,
            limit=limit,
            offset=offset,
        )
        return [
            LeaderboardEntry(
                user_id=user_id,
                total_points=quantize_points(points),
                rank=offset + position,
            )
            for position, (user_id, points) in enumerate(rows, start=1)
        ]

    @staticmethod
    async def create_rule(
        session: AsyncSession,
        *,
        owner_id: int,
        code: str,
        value: Decimal,
        rule_type: str,
        now_utc: datetime,
    ) -> LoyaltyRule:
        parse_rule_type(rule_type)
        rule, created = await LoyaltyRulesRepo.get_or_create(
            session,
            owner_id=owner_id,
            code=code,
            value=quantize_points(value),
            rule_type=rule_type,
            now_utc=now_utc,
        )
        if not created:
            raise LoyaltyRuleAlreadyExistsError(context={"owner_id": owner_id, "code": code})
        logger.info("loyalty_rule_created", owner_id=owner_id, code=code, rule_type=rule_type)
        return rule

    @staticmethod
    async def update_rule(
        session: AsyncSession,
        *,
        owner_id: int,
        code: str,
        value: Decimal | None,
        rule_type: str | None,
        now_utc: datetime,
    ) -> LoyaltyRule:
        rule = await LoyaltyService.resolve_rule(session, owner_id=owner_id, code=code)
        if rule_type is not None:
            parse_rule_type(rule_type)
            rule.type = rule_type
        if value is not None:
            rule.value = quantize_points(value)
        rule.updated_at = now_utc
        await session.flush()
        logger.info("loyalty_rule_updated", owner_id=owner_id, code=code, rule_type=rule.type)
        return rule

    @staticmethod
    async def delete_rule(session: AsyncSession, *, owner_id: int, code: str) -> None:
        rule = await LoyaltyService.resolve_rule(session, owner_id=owner_id, code=code)
        await LoyaltyRulesRepo.delete(session, rule=rule)
        logger.info("loyalty_rule_deleted", owner_id=owner_id, code=code)


async def accrue_points(
    *,
    user_id: int,
    owner_id: int,
    code: str,
    received_value: Decimal = ZERO_POINTS,
    now_utc: datetime | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    locks: KeyedLocks | None = None,
) -> LoyaltyAccrualResult:
    """Runs one accrual in its own transaction, serialized per (user, owner)."""
    factory = session_factory or SessionLocal
    key_locks = locks or accrual_locks
    moment = now_utc or datetime.now(timezone.utc)

    async with key_locks.hold((user_id, owner_id)):
        try:
            async with factory.begin() as session:
                return await LoyaltyService.accrue(
                    session,
                    user_id=user_id,
                    owner_id=owner_id,
                    code=code,
                    received_value=received_value,
                    now_utc=moment,
                )
        except SQLAlchemyError as exc:
            logger.exception(
                "loyalty_accrual_storage_failed",
                user_id=user_id,
                owner_id=owner_id,
                code=code,
            )
            raise LoyaltyInfrastructureError(
                context={"operation": "accrue_points", "code": code}
            ) from exc


@asynccontextmanager
async def loyalty_storage_guard(operation: str, **log_fields: object) -> AsyncIterator[None]:
    """Turns storage failures of a read or admin call into ``LoyaltyInfrastructureError``."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("loyalty_storage_failed", operation=operation, **log_fields)
        raise LoyaltyInfrastructureError(context={"operation": operation}) from exc
