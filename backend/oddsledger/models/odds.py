from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from oddsledger.database import Base


class OddsColumnsMixin:
    """Canonical odds row shared by the current and opening stores.

    ``line`` is NULL for the main line. ``line_key`` carries the same value
    with ``""`` standing in for NULL so the unique constraint treats the main
    line as a single key on every backend.
    """

    id: Mapped[int] = mapped_column(primary_key=True)

    @declared_attr
    def eventid(cls) -> Mapped[str]:
        return mapped_column(ForeignKey("games.id"), index=True)

    oddid: Mapped[str] = mapped_column(String(100), index=True)
    line: Mapped[str | None] = mapped_column(String(32), nullable=True)
    line_key: Mapped[str] = mapped_column(String(32), default="")
    sportsbook: Mapped[str] = mapped_column(String(32), default="SportsGameOdds")
    marketname: Mapped[str] = mapped_column(String(50))
    bettypeid: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sideid: Mapped[str | None] = mapped_column(String(50), nullable=True)
    statid: Mapped[str | None] = mapped_column(String(100), nullable=True)
    playerid: Mapped[str | None] = mapped_column(String(100), nullable=True)
    periodid: Mapped[str | None] = mapped_column(String(50), nullable=True)
    market_kind: Mapped[str] = mapped_column(String(16), default="unknown", index=True)
    book_line: Mapped[str | None] = mapped_column(String(32), nullable=True)
    bookodds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    fanduel_odds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fanduel_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    draftkings_odds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    draftkings_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    caesars_odds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    caesars_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    betmgm_odds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    betmgm_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    espnbet_odds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    espnbet_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    fanatics_odds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fanatics_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    bovada_odds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bovada_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    betrivers_odds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    betrivers_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    pinnacle_odds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pinnacle_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    bet365_odds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bet365_link: Mapped[str | None] = mapped_column(String(512), nullable=True)

    score: Mapped[str | None] = mapped_column(String(50), nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class CurrentOdds(OddsColumnsMixin, Base):
    __tablename__ = "odds"
    __table_args__ = (
        UniqueConstraint("eventid", "oddid", "line_key", name="uq_odds_event_odd_line"),
        Index("ix_odds_event_market", "eventid", "marketname"),
    )


class OpeningOdds(OddsColumnsMixin, Base):
    __tablename__ = "open_odds"
    __table_args__ = (
        UniqueConstraint("eventid", "oddid", "line_key", name="uq_open_odds_event_odd_line"),
    )
