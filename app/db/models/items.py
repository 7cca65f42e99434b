from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base, BigIntPK


class Item(Base):
    __tablename__ = "items"
    __table_args__ = (UniqueConstraint("collection_id", "token_id", name="uq_items_collection_token"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    collection_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=False,
    )
    token_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
