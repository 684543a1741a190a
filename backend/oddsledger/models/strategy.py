from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from oddsledger.database import Base


class Strategy(Base):
    __tablename__ = "strategies"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class StrategyBet(Base):
    __tablename__ = "strategy_bets"
    __table_args__ = (UniqueConstraint("strategy_id", "bet_id", name="uq_strategy_bet"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    strategy_id: Mapped[int] = mapped_column(ForeignKey("strategies.id"), index=True)
    bet_id: Mapped[int] = mapped_column(ForeignKey("bets.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class StrategyLeaderboard(Base):
    """Cached rollup per strategy; always rebuilt from strategy_bets."""

    __tablename__ = "strategy_leaderboard"

    id: Mapped[int] = mapped_column(primary_key=True)
    strategy_id: Mapped[int] = mapped_column(ForeignKey("strategies.id"), unique=True, index=True)
    total_bets: Mapped[int] = mapped_column(Integer, default=0)
    settled_bets: Mapped[int] = mapped_column(Integer, default=0)
    pending_bets: Mapped[int] = mapped_column(Integer, default=0)
    winning_bets: Mapped[int] = mapped_column(Integer, default=0)
    losing_bets: Mapped[int] = mapped_column(Integer, default=0)
    push_bets: Mapped[int] = mapped_column(Integer, default=0)
    win_rate: Mapped[float] = mapped_column(Float, default=0.0)
    roi_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    total_staked: Mapped[float] = mapped_column(Float, default=0.0)
    total_profit: Mapped[float] = mapped_column(Float, default=0.0)
    last_calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
