from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import structlog
from fastapi import APIRouter, HTTPException, Query, Request, Response

from app.api.routes.internal_errors import as_http_exception
from app.api.routes.internal_loyalty_models import (
    LeaderboardEntryResponse,
    LeaderboardResponse,
    LoyaltyClaimRequest,
    LoyaltyClaimResponse,
    LoyaltyPointsResponse,
    LoyaltyRuleCreateRequest,
    LoyaltyRuleResponse,
    LoyaltyRuleUpdateRequest,
    LoyaltyTransactionListResponse,
    LoyaltyTransactionResponse,
)
from app.core.config import get_settings
from app.db.session import SessionLocal
from app.economy.loyalty.errors import LoyaltyError, LoyaltyTransactionsNotFoundError
from app.economy.loyalty.rules import ZERO_POINTS
from app.economy.loyalty.service import LoyaltyService, accrue_points, loyalty_storage_guard
from app.services.internal_auth import assert_internal_access

router = APIRouter(tags=["internal", "loyalty"])
logger = structlog.get_logger(__name__)


def _assert_internal_access(request: Request) -> None:
    assert_internal_access(request, settings=get_settings(), scope="loyalty")


def _rule_as_response(rule: object) -> LoyaltyRuleResponse:
    return LoyaltyRuleResponse(
        id=int(getattr(rule, "id")),
        owner_id=int(getattr(rule, "owner_id")),
        code=str(getattr(rule, "code")),
        value=float(getattr(rule, "value")),
        type=str(getattr(rule, "type")),
        updated_at=getattr(rule, "updated_at"),
    )


@router.post("/internal/loyalty/claim", response_model=LoyaltyClaimResponse)
async def claim_loyalty_code(payload: LoyaltyClaimRequest, request: Request) -> LoyaltyClaimResponse:
    _assert_internal_access(request)

    try:
        result = await accrue_points(
            user_id=payload.user_id,
            owner_id=payload.owner_id,
            code=payload.code,
            received_value=payload.value if payload.value is not None else ZERO_POINTS,
            now_utc=datetime.now(timezone.utc),
            session_factory=SessionLocal,
        )
    except LoyaltyError as exc:
        logger.info(
            "loyalty_claim_rejected",
            user_id=payload.user_id,
            owner_id=payload.owner_id,
            code=payload.code,
            error_code=exc.code,
        )
        raise as_http_exception(exc) from exc

    return LoyaltyClaimResponse(
        points_added=float(result.points_added),
        total_points=float(result.total_points),
        transaction_id=result.transaction_id,
    )


@router.get("/internal/loyalty/points", response_model=LoyaltyPointsResponse)
async def get_loyalty_points(
    request: Request,
    user_id: int = Query(gt=0),
    owner_id: int = Query(gt=0),
) -> LoyaltyPointsResponse:
    _assert_internal_access(request)

    try:
        async with loyalty_storage_guard("get_total_points", user_id=user_id, owner_id=owner_id):
            async with SessionLocal.begin() as session:
                total_points = await LoyaltyService.get_total_points(
                    session,
                    user_id=user_id,
                    owner_id=owner_id,
                )
    except LoyaltyError as exc:
        raise as_http_exception(exc) from exc
    return LoyaltyPointsResponse(user_id=user_id, owner_id=owner_id, total_points=float(total_points))


@router.get("/internal/loyalty/transactions", response_model=LoyaltyTransactionListResponse)
async def list_loyalty_transactions(
    request: Request,
    user_id: int = Query(gt=0),
    owner_id: int = Query(gt=0),
) -> LoyaltyTransactionListResponse:
    _assert_internal_access(request)

    try:
        async with loyalty_storage_guard("list_transactions", user_id=user_id, owner_id=owner_id):
            async with SessionLocal.begin() as session:
                entries = await LoyaltyService.list_transactions(session, user_id=user_id, owner_id=owner_id)
    except LoyaltyError as exc:
        raise as_http_exception(exc) from exc
    if not entries:
        raise as_http_exception(LoyaltyTransactionsNotFoundError())

    return LoyaltyTransactionListResponse(
        transactions=[
            LoyaltyTransactionResponse(
                id=entry.id,
                code=entry.code,
                points=float(entry.points),
                type=entry.type,
                status=entry.status,
                created_at=entry.created_at,
            )
            for entry in entries
        ]
    )


@router.get("/internal/loyalty/leaderboard", response_model=LeaderboardResponse)
async def get_loyalty_leaderboard(
    request: Request,
    owner_id: int = Query(gt=0),
    period: str = Query(default="weekly", min_length=1, max_length=16),
    limit: int = Query(default=100, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> LeaderboardResponse:
    _assert_internal_access(request)

    try:
        async with loyalty_storage_guard("get_leaderboard", owner_id=owner_id):
            async with SessionLocal.begin() as session:
                entries = await LoyaltyService.get_leaderboard(
                    session,
                    owner_id=owner_id,
                    period=period,
                    now_utc=datetime.now(timezone.utc),
                    limit=limit,
                    offset=offset,
                )
    except LoyaltyError as exc:
        raise as_http_exception(exc) from exc

    return LeaderboardResponse(
        owner_id=owner_id,
        period=period,
        leaderboard=[
            LeaderboardEntryResponse(
                user_id=entry.user_id,
                total_points=float(entry.total_points),
                rank=entry.rank,
            )
            for entry in entries
        ],
    )


@router.post("/internal/loyalty/rules", response_model=LoyaltyRuleResponse, status_code=201)
async def create_loyalty_rule(payload: LoyaltyRuleCreateRequest, request: Request) -> LoyaltyRuleResponse:
    _assert_internal_access(request)

    try:
        async with loyalty_storage_guard("create_rule", owner_id=payload.owner_id, code=payload.code):
            async with SessionLocal.begin() as session:
                rule = await LoyaltyService.create_rule(
                    session,
                    owner_id=payload.owner_id,
                    code=payload.code,
                    value=Decimal(payload.value),
                    rule_type=payload.type,
                    now_utc=datetime.now(timezone.utc),
                )
    except LoyaltyError as exc:
        raise as_http_exception(exc) from exc
    return _rule_as_response(rule)


@router.put("/internal/loyalty/rules", response_model=LoyaltyRuleResponse)
async def update_loyalty_rule(payload: LoyaltyRuleUpdateRequest, request: Request) -> LoyaltyRuleResponse:
    _assert_internal_access(request)
    if payload.value is None and payload.type is None:
        raise HTTPException(status_code=422, detail={"code": "E_LOYALTY_RULE_NO_CHANGES"})

    try:
        async with loyalty_storage_guard("update_rule", owner_id=payload.owner_id, code=payload.code):
            async with SessionLocal.begin() as session:
                rule = await LoyaltyService.update_rule(
                    session,
                    owner_id=payload.owner_id,
                    code=payload.code,
                    value=payload.value,
                    rule_type=payload.type,
                    now_utc=datetime.now(timezone.utc),
                )
    except LoyaltyError as exc:
        raise as_http_exception(exc) from exc
    return _rule_as_response(rule)


@router.delete("/internal/loyalty/rules", status_code=204)
async def delete_loyalty_rule(
    request: Request,
    owner_id: int = Query(gt=0),
    code: str = Query(min_length=1, max_length=64),
) -> Response:
    _assert_internal_access(request)

    try:
        async with loyalty_storage_guard("delete_rule", owner_id=owner_id, code=code):
            async with SessionLocal.begin() as session:
                await LoyaltyService.delete_rule(session, owner_id=owner_id, code=code)
    except LoyaltyError as exc:
        raise as_http_exception(exc) from exc
    return Response(status_code=204)
