from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from oddsledger.database import Base

SETTLED_STATUSES = frozenset({"won", "lost", "push"})


class Bet(Base):
    __tablename__ = "bets"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    game_id: Mapped[str] = mapped_column(ForeignKey("games.id"), index=True)
    oddid: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    # proposition key line; NULL means the main line
    line: Mapped[str | None] = mapped_column(String(32), nullable=True)
    line_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    bet_type: Mapped[str] = mapped_column(String(32), index=True)
    side: Mapped[str | None] = mapped_column(String(32), nullable=True)
    stake: Mapped[float] = mapped_column(Float)
    odds: Mapped[int] = mapped_column(Integer)
    potential_payout: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    profit: Mapped[float | None] = mapped_column(Float, nullable=True)
    matched_oddid: Mapped[str | None] = mapped_column(String(100), nullable=True)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
