from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class LoyaltyClaimRequest(BaseModel):
    user_id: int = Field(gt=0)
    owner_id: int = Field(gt=0)
    code: str = Field(min_length=1, max_length=64)
    value: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)


class LoyaltyClaimResponse(BaseModel):
    points_added: float
    total_points: float
    transaction_id: int


class LoyaltyPointsResponse(BaseModel):
    user_id: int
    owner_id: int
    total_points: float


class LoyaltyTransactionResponse(BaseModel):
    id: int
    code: str | None = None
    points: float
    type: str
    status: str
    created_at: datetime


class LoyaltyTransactionListResponse(BaseModel):
    transactions: list[LoyaltyTransactionResponse]


class LeaderboardEntryResponse(BaseModel):
    user_id: int
    total_points: float
    rank: int = Field(ge=1)


class LeaderboardResponse(BaseModel):
    owner_id: int
    period: str
    leaderboard: list[LeaderboardEntryResponse]


class LoyaltyRuleCreateRequest(BaseModel):
    owner_id: int = Field(gt=0)
    code: str = Field(min_length=1, max_length=64)
    value: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    type: str = Field(min_length=1, max_length=16)


class LoyaltyRuleUpdateRequest(BaseModel):
    owner_id: int = Field(gt=0)
    code: str = Field(min_length=1, max_length=64)
    value: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    type: str | None = Field(default=None, min_length=1, max_length=16)


class LoyaltyRuleResponse(BaseModel):
    id: int
    owner_id: int
    code: str
    value: float
    type: str
    updated_at: datetime
