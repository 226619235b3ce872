from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
import requests

from pickem.models import OddsHistory
from pickem.utils.odds_sync import NOT_CONFIGURED, PROVIDER_NAME, OddsSync


def _market(key, outcomes):
    return {"key": key, "outcomes": outcomes}


def _bookmaker(key="draftkings", home_spread=-3.5, over_under=47.5, home_price=-175):
    return {
        "key": key,
        "title": key.title(),
        "last_update": "2025-09-05T12:00:00Z",
        "markets": [
            _market(
                "h2h",
                [
                    {"name": "Kansas City Chiefs", "price": home_price},
                    {"name": "Buffalo Bills", "price": 150},
                ],
            ),
            _market(
                "spreads",
                [
                    {"name": "Kansas City Chiefs", "price": -110, "point": home_spread},
                    {"name": "Buffalo Bills", "price": -110, "point": -home_spread},
                ],
            ),
            _market(
                "totals",
                [
                    {"name": "Over", "price": -110, "point": over_under},
                    {"name": "Under", "price": -110, "point": over_under},
                ],
            ),
        ],
    }


def _event(game, bookmakers, commence=None):
    return {
        "id": "evt-1",
        "sport_key": "americanfootball_nfl",
        "commence_time": (commence or game.kickoff).isoformat(),
        "home_team": "Kansas City Chiefs",
        "away_team": "Buffalo Bills",
        "bookmakers": bookmakers,
    }


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    return response


@pytest.fixture
def odds_sync(app):
    return OddsSync(api_key="test-key")


def test_not_configured_without_key(app, upcoming_game):
    client = OddsSync()

    with patch.object(client, "_make_api_request") as request:
        result = client.update_week_odds(upcoming_game.week, upcoming_game.season)

    assert result == (False, NOT_CONFIGURED, 0)
    request.assert_not_called()
    assert client.get_status()["configured"] is False


def test_update_week_odds_stores_lines(odds_sync, upcoming_game):
    payload = [_event(upcoming_game, [_bookmaker()])]

    with patch.object(
        odds_sync, "_make_api_request", return_value=_response(payload)
    ) as request:
        success, message, updated = odds_sync.update_week_odds(
            upcoming_game.week, upcoming_game.season
        )

    assert success is True
    assert updated == 1
    assert message == "Updated odds for 1 games in Week 1, 2025"

    params = request.call_args.kwargs["params"]
    assert params["apiKey"] == "test-key"
    assert params["bookmakers"] == "draftkings"

    assert upcoming_game.spread == -3.5
    assert upcoming_game.over_under == 47.5
    assert upcoming_game.home_moneyline == -175
    assert upcoming_game.away_moneyline == 150
    assert upcoming_game.odds_provider == PROVIDER_NAME

    history = OddsHistory.query.filter_by(game_id=upcoming_game.id).one()
    assert history.away_spread == 3.5
    assert upcoming_game.to_dict()["odds_updated_at"] is not None


def test_history_only_grows_when_the_line_moves(odds_sync, upcoming_game):
    same = [_event(upcoming_game, [_bookmaker()])]
    moved = [_event(upcoming_game, [_bookmaker(home_spread=-6.5)])]

    with patch.object(
        odds_sync,
        "_make_api_request",
        side_effect=[_response(same), _response(same), _response(moved)],
    ):
        first = odds_sync.update_week_odds(1, 2025)
        unchanged = odds_sync.update_week_odds(1, 2025)
        latest = odds_sync.update_week_odds(1, 2025)

    assert [first[2], unchanged[2], latest[2]] == [1, 0, 1]
    assert OddsHistory.query.count() == 2
    assert upcoming_game.spread == -6.5
    assert upcoming_game.odds_history.first().home_spread == -6.5


def test_prefers_configured_bookmaker(odds_sync, upcoming_game):
    payload = [
        _event(
            upcoming_game,
            [_bookmaker("fanduel", home_spread=-1.5), _bookmaker("draftkings")],
        )
    ]

    with patch.object(odds_sync, "_make_api_request", return_value=_response(payload)):
        odds_sync.update_week_odds(1, 2025)

    assert upcoming_game.spread == -3.5


def test_falls_back_to_first_bookmaker(odds_sync, upcoming_game):
    line = odds_sync.parse_event(
        _event(upcoming_game, [_bookmaker("fanduel", home_spread=-1.5)])
    )

    assert line["bookmaker"] == "fanduel"
    assert line["home_spread"] == -1.5
    assert odds_sync.parse_event(_event(upcoming_game, [])) is None


def test_skips_started_games_and_other_weeks(odds_sync, started_game, upcoming_game):
    rematch = _event(
        upcoming_game, [_bookmaker()], commence=upcoming_game.kickoff + timedelta(weeks=3)
    )

    with patch.object(odds_sync, "_make_api_request", return_value=_response([rematch])):
        success, _, updated = odds_sync.update_week_odds(1, 2025)

    assert success is True
    assert updated == 0
    assert started_game.spread is None
    assert OddsHistory.query.count() == 0


def test_request_failure_is_reported(odds_sync, upcoming_game):
    with patch.object(
        odds_sync,
        "_make_api_request",
        side_effect=requests.exceptions.ConnectionError("offline"),
    ):
        result = odds_sync.update_week_odds(1, 2025)

    assert result == (False, "offline", 0)


def test_status_tracks_remaining_requests(odds_sync):
    odds_sync.session.get = MagicMock(
        return_value=MagicMock(status_code=200, headers={"X-Requests-Remaining": "480"})
    )

    odds_sync._make_api_request("https://example.test/odds")
    status = odds_sync.get_status()

    assert status["configured"] is True
    assert status["requests_made"] == 1
    assert status["remaining_requests"] == 480


def test_status_estimates_remaining_without_header(app):
    app.config["ODDS_REQUESTS_PER_MONTH"] = 500
    client = OddsSync(api_key="test-key")

    assert client.get_status()["remaining_requests"] == 500
