import logging
from datetime import UTC, datetime

import pytest

from oddsledger.services.odds_canonicalizer import MarketKind, canonicalize_event_odds, classify_proposition

FETCHED_AT = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def _payload() -> dict:
    return {
        "points-home-game-sp-home": {
            "oddID": "points-home-game-sp-home",
            "marketName": "Point Spread",
            "statID": "points",
            "statEntityID": "home",
            "periodID": "game",
            "betTypeID": "sp",
            "sideID": "home",
            "bookOdds": "-110",
            "bookSpread": "-3.5",
            "byBookmaker": {
                "draftkings": {
                    "odds": "-110",
                    "spread": "-3.5",
                    "available": True,
                    "deeplink": "https://sportsbook.draftkings.com/event/1",
                    "altLines": [{"odds": "+120", "spread": "+3.5", "available": True}],
                },
                "fanduel": {
                    "odds": "-105",
                    "spread": "-3.5",
                    "available": True,
                    "altLines": [
                        {"odds": "+125", "spread": 3.5, "available": True},
                        {"odds": "+300", "spread": "-10.5", "available": False},
                    ],
                },
                "somebook": {"odds": "-120", "available": True},
            },
        },
        "passing_yards-JOSH_ALLEN_1_NFL-game-ou-over": {
            "oddID": "passing_yards-JOSH_ALLEN_1_NFL-game-ou-over",
            "marketName": "Josh Allen Passing Yards Over/Under",
            "statID": "passing_yards",
            "playerID": "JOSH_ALLEN_1_NFL",
            "periodID": "game",
            "betTypeID": "ou",
            "sideID": "over",
            "bookOverUnder": "250.5",
            "byBookmaker": {
                "betmgm": {"odds": "-115", "overUnder": "250.5", "available": True},
                "caesars": {"odds": "-110", "overUnder": "250.5", "available": False},
            },
        },
        "bad": "not an object",
        "missing-market": {"oddID": "missing-market", "byBookmaker": {}},
    }


def test_canonicalize_is_deterministic():
    first = canonicalize_event_odds("evt-1", _payload(), FETCHED_AT)
    second = canonicalize_event_odds("evt-1", _payload(), FETCHED_AT)
    assert first == second
    assert [row.key() for row in first.rows] == [
        ("evt-1", "points-home-game-sp-home", None),
        ("evt-1", "points-home-game-sp-home", "3.5"),
        ("evt-1", "passing_yards-JOSH_ALLEN_1_NFL-game-ou-over", None),
    ]


def test_alternate_line_from_two_books_merges_into_one_row():
    batch = canonicalize_event_odds("evt-1", _payload(), FETCHED_AT)
    alt_rows = [row for row in batch.rows if row.line == "3.5"]

    assert len(alt_rows) == 1
    assert alt_rows[0].prices == {"draftkings": 120, "fanduel": 125}
    assert alt_rows[0].is_alternate
    assert alt_rows[0].line_key == "3.5"


def test_main_line_merges_known_books_and_skips_unavailable():
    batch = canonicalize_event_odds("evt-1", _payload(), FETCHED_AT)
    spread, _, prop = batch.rows

    assert spread.prices == {"draftkings": -110, "fanduel": -105}
    assert spread.links == {"draftkings": "https://sportsbook.draftkings.com/event/1"}
    assert spread.book_odds == -110
    assert spread.book_line == "-3.5"
    assert spread.line is None and spread.line_key == ""
    assert prop.prices == {"betmgm": -115}
    assert prop.book_line == "250.5"
    assert prop.player_id == "JOSH_ALLEN_1_NFL"


def test_unavailable_alt_line_is_not_emitted():
    batch = canonicalize_event_odds("evt-1", _payload(), FETCHED_AT)
    assert all(row.line != "-10.5" for row in batch.rows)


def test_malformed_propositions_are_dropped_and_logged(caplog: pytest.LogCaptureFixture):
    with caplog.at_level(logging.WARNING):
        batch = canonicalize_event_odds("evt-1", _payload(), FETCHED_AT)

    assert batch.dropped == ["bad", "missing-market"]
    assert "dropping malformed proposition" in caplog.text
    assert len(batch.rows) == 3


def test_empty_payload_yields_empty_batch():
    batch = canonicalize_event_odds("evt-1", None, FETCHED_AT)
    assert batch.rows == [] and batch.dropped == []


def test_store_values_cover_every_book_column():
    batch = canonicalize_event_odds("evt-1", _payload(), FETCHED_AT)
    values = batch.rows[0].store_values()

    assert values["eventid"] == "evt-1"
    assert values["line_key"] == ""
    assert values["fanduel_odds"] == -105
    assert values["bet365_odds"] is None
    assert values["market_kind"] == "main_line"
    assert values["fetched_at"] == FETCHED_AT


def test_long_market_name_is_truncated():
    payload = {"x-all-game-yn-yes": {"oddID": "x-all-game-yn-yes", "marketName": "M" * 80, "byBookmaker": {}}}
    row = canonicalize_event_odds("evt-1", payload, FETCHED_AT).rows[0]
    assert len(row.market_name) == 50


def test_oversized_lines_are_dropped_not_written(caplog: pytest.LogCaptureFixture):
    payload = {
        "points-all-game-ou-over": {
            "oddID": "points-all-game-ou-over",
            "marketName": "Over/Under",
            "bookOverUnder": "x" * 40,
            "byBookmaker": {
                "fanduel": {
                    "odds": "-110",
                    "available": True,
                    "altLines": [
                        {"odds": "+150", "overUnder": "x" * 40, "available": True},
                        {"odds": "+150", "overUnder": "1e40", "available": True},
                        {"odds": "+140", "overUnder": "9.5", "available": True},
                    ],
                },
            },
        }
    }
    with caplog.at_level(logging.WARNING):
        batch = canonicalize_event_odds("evt-1", payload, FETCHED_AT)

    assert [row.line for row in batch.rows] == [None, "9.5"]
    assert batch.rows[0].book_line is None
    assert batch.dropped == ["points-all-game-ou-over@" + "x" * 32, "points-all-game-ou-over@" + "1" + "0" * 31]
    assert all(len(row.line_key) <= 32 for row in batch.rows)
    assert "dropping oversized alternate line" in caplog.text


def test_non_mapping_payload_yields_empty_batch():
    assert canonicalize_event_odds("evt-1", ["junk"], FETCHED_AT).rows == []


@pytest.mark.parametrize(
    ("odd_id", "market_name", "expected"),
    [
        ("points-home-game-ml-home", "Moneyline", MarketKind.MAIN_LINE),
        ("points-all-game-ou-over", "Over/Under", MarketKind.MAIN_LINE),
        ("passing_yards-JOSH_ALLEN_1_NFL-game-ou-over", "Passing Yards", MarketKind.PLAYER_PROP),
        ("batting_homeRuns-home-game-ou-over", "Home Team Home Runs", MarketKind.TEAM_PROP),
        ("firstToScore-all-game-yn-yes", "First To Score", MarketKind.GAME_PROP),
        ("rebounds-LEBRON_JAMES_1_NBA-1h-ou-under", "Rebounds", MarketKind.PLAYER_PROP),
        ("mystery", "Something", MarketKind.UNKNOWN),
    ],
)
def test_classify_proposition(odd_id, market_name, expected):
    assert classify_proposition(odd_id, market_name) == expected
