"""odds ledger schema

Revision ID: 0001_odds_ledger
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_odds_ledger"
down_revision = None
branch_labels = None
depends_on = None

SPORTSBOOKS = ("fanduel", "draftkings", "caesars", "betmgm", "espnbet", "fanatics", "bovada", "betrivers", "pinnacle", "bet365")


def _odds_columns() -> list[sa.Column]:
    columns = [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("eventid", sa.String(length=100), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("oddid", sa.String(length=100), nullable=False),
        sa.Column("line", sa.String(length=32), nullable=True),
        sa.Column("line_key", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("sportsbook", sa.String(length=32), nullable=False, server_default="SportsGameOdds"),
        sa.Column("marketname", sa.String(length=50), nullable=False),
        sa.Column("bettypeid", sa.String(length=50), nullable=True),
        sa.Column("sideid", sa.String(length=50), nullable=True),
        sa.Column("statid", sa.String(length=100), nullable=True),
        sa.Column("playerid", sa.String(length=100), nullable=True),
        sa.Column("periodid", sa.String(length=50), nullable=True),
        sa.Column("market_kind", sa.String(length=16), nullable=False, server_default="unknown"),
        sa.Column("book_line", sa.String(length=32), nullable=True),
        sa.Column("bookodds", sa.Integer(), nullable=True),
    ]
    for book in SPORTSBOOKS:
        columns.append(sa.Column(f"{book}_odds", sa.Integer(), nullable=True))
        columns.append(sa.Column(f"{book}_link", sa.String(length=512), nullable=True))
    columns.extend(
        [
            sa.Column("score", sa.String(length=50), nullable=True),
            sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        ]
    )
    return columns


def upgrade() -> None:
    op.create_table(
        "games",
        sa.Column("id", sa.String(length=100), primary_key=True),
        sa.Column("league", sa.String(length=50), nullable=False),
        sa.Column("home_team", sa.String(length=128), nullable=False),
        sa.Column("away_team", sa.String(length=128), nullable=False),
        sa.Column("game_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="scheduled"),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_games_league", "games", ["league"])
    op.create_index("ix_games_game_time", "games", ["game_time"])
    op.create_index("ix_games_status", "games", ["status"])

    op.create_table(
        "odds",
        *_odds_columns(),
        sa.UniqueConstraint("eventid", "oddid", "line_key", name="uq_odds_event_odd_line"),
    )
    op.create_index("ix_odds_eventid", "odds", ["eventid"])
    op.create_index("ix_odds_oddid", "odds", ["oddid"])
    op.create_index("ix_odds_market_kind", "odds", ["market_kind"])
    op.create_index("ix_odds_event_market", "odds", ["eventid", "marketname"])

    op.create_table(
        "open_odds",
        *_odds_columns(),
        sa.UniqueConstraint("eventid", "oddid", "line_key", name="uq_open_odds_event_odd_line"),
    )
    op.create_index("ix_open_odds_eventid", "open_odds", ["eventid"])
    op.create_index("ix_open_odds_oddid", "open_odds", ["oddid"])
    op.create_index("ix_open_odds_market_kind", "open_odds", ["market_kind"])

    op.create_table(
        "bets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("game_id", sa.String(length=100), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("oddid", sa.String(length=100), nullable=True),
        sa.Column("line", sa.String(length=32), nullable=True),
        sa.Column("line_value", sa.Float(), nullable=True),
        sa.Column("bet_type", sa.String(length=32), nullable=False),
        sa.Column("side", sa.String(length=32), nullable=True),
        sa.Column("stake", sa.Float(), nullable=False),
        sa.Column("odds", sa.Integer(), nullable=False),
        sa.Column("potential_payout", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("profit", sa.Float(), nullable=True),
        sa.Column("matched_oddid", sa.String(length=100), nullable=True),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status IN ('pending', 'won', 'lost', 'push')", name="ck_bets_status"),
    )
    op.create_index("ix_bets_user_id", "bets", ["user_id"])
    op.create_index("ix_bets_game_id", "bets", ["game_id"])
    op.create_index("ix_bets_oddid", "bets", ["oddid"])
    op.create_index("ix_bets_bet_type", "bets", ["bet_type"])
    op.create_index("ix_bets_status", "bets", ["status"])

    op.create_table(
        "strategies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_strategies_user_id", "strategies", ["user_id"])

    op.create_table(
        "strategy_bets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("strategy_id", sa.Integer(), sa.ForeignKey("strategies.id"), nullable=False),
        sa.Column("bet_id", sa.Integer(), sa.ForeignKey("bets.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("strategy_id", "bet_id", name="uq_strategy_bet"),
    )
    op.create_index("ix_strategy_bets_strategy_id", "strategy_bets", ["strategy_id"])
    op.create_index("ix_strategy_bets_bet_id", "strategy_bets", ["bet_id"])

    op.create_table(
        "strategy_leaderboard",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("strategy_id", sa.Integer(), sa.ForeignKey("strategies.id"), nullable=False),
        sa.Column("total_bets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("settled_bets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pending_bets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("winning_bets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losing_bets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("push_bets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("win_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("roi_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_staked", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_profit", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_calculated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "winning_bets + losing_bets + push_bets = settled_bets AND settled_bets + pending_bets = total_bets",
            name="ck_strategy_leaderboard_partition",
        ),
    )
    op.create_index("ix_strategy_leaderboard_strategy_id", "strategy_leaderboard", ["strategy_id"], unique=True)


def downgrade() -> None:
    op.drop_table("strategy_leaderboard")
    op.drop_table("strategy_bets")
    op.drop_table("strategies")
    op.drop_table("bets")
    op.drop_table("open_odds")
    op.drop_table("odds")
    op.drop_table("games")
