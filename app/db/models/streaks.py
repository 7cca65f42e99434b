from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class Streak(Base):
    __tablename__ = "streaks"
    __table_args__ = (CheckConstraint("streak_count >= 1", name="ck_streaks_count_positive"),)

    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    owner_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    streak_count: Mapped[int] = mapped_column(Integer, nullable=False)
    last_check_in: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
