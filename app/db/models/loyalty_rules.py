from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base, BigIntPK


class LoyaltyRule(Base):
    __tablename__ = "loyalties"
    __table_args__ = (
        CheckConstraint(
            "type IN ('ONE_FIXED','FIXED','ONE_VARIABLE','VARIABLE',"
            "'ADMIN_ADD','ADMIN_SUBTRACT','REFERRAL','REDEEM')",
            name="ck_loyalties_type",
        ),
        UniqueConstraint("owner_id", "code", name="uq_loyalties_owner_code"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
