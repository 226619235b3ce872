from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from pickem.models import Game, Pick, Team
from pickem.utils.data_sync import DataSync

TEAMS_RESPONSE = {
    "sports": [
        {
            "leagues": [
                {
                    "teams": [
                        {
                            "team": {
                                "id": "12",
                                "abbreviation": "KC",
                                "location": "Kansas City",
                                "name": "Chiefs",
                                "displayName": "Kansas City Chiefs",
                                "color": "e31837",
                                "logos": [{"href": "https://a.espncdn.com/kc.png"}],
                            }
                        },
                        {
                            "team": {
                                "id": "2",
                                "abbreviation": "BUF",
                                "location": "Buffalo",
                                "name": "Bills",
                                "displayName": "Buffalo Bills",
                                "color": "00338d",
                            }
                        },
                    ]
                }
            ]
        }
    ]
}


def _event(event_id, home, away, date, home_score="0", away_score="0", completed=False, state="pre"):
    return {
        "id": event_id,
        "date": date,
        "competitions": [
            {
                "date": date,
                "status": {"type": {"completed": completed, "state": state}},
                "competitors": [
                    {"homeAway": "home", "score": home_score, "team": {"abbreviation": home}},
                    {"homeAway": "away", "score": away_score, "team": {"abbreviation": away}},
                ],
            }
        ],
    }


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    return response


@pytest.fixture
def data_sync(app):
    return DataSync()


def test_uses_configured_base_url(app):
    app.config["NFL_API_BASE_URL"] = "https://example.test/nfl"

    assert DataSync().api_base_url == "https://example.test/nfl"


def test_sync_teams_upserts_by_abbreviation(data_sync, db):
    existing = Team(name="Old", display_name="Old", abbreviation="KC")
    db.session.add(existing)
    db.session.commit()

    with patch.object(data_sync, "_make_api_request", return_value=_response(TEAMS_RESPONSE)):
        success, message = data_sync.sync_teams()

    assert success is True
    assert message == "Synced 2 teams"
    assert Team.query.count() == 2

    chiefs = Team.query.filter_by(abbreviation="KC").one()
    assert chiefs.id == existing.id
    assert chiefs.name == "Kansas City Chiefs"
    assert chiefs.color == "#e31837"
    assert chiefs.espn_id == "12"
    assert chiefs.logo_url == "https://a.espncdn.com/kc.png"


def test_sync_teams_reports_request_failure(data_sync):
    with patch.object(
        data_sync,
        "_make_api_request",
        side_effect=requests.exceptions.ConnectionError("offline"),
    ):
        success, message = data_sync.sync_teams()

    assert success is False
    assert "offline" in message


def test_sync_week_games(data_sync, teams):
    events = {
        "events": [
            _event("401", "KC", "BUF", "2025-09-07T20:25Z"),
            _event("402", "BUF", "DAL", "2025-09-08T00:20Z", "27", "20", True, "post"),
            _event("403", "NYJ", "KC", "2025-09-08T17:00Z"),
        ]
    }

    with patch.object(data_sync, "_make_api_request", return_value=_response(events)) as request:
        success, message = data_sync.sync_week_games(1, 2025)

    assert success is True
    assert message == "Synced 2 games for Week 1, 2025 (1 skipped)"
    assert request.call_args.kwargs["params"] == {"dates": 2025, "seasontype": 2, "week": 1}

    scheduled = Game.query.filter_by(espn_id="401").one()
    assert scheduled.home_team_id == teams["KC"].id
    assert scheduled.kickoff == datetime(2025, 9, 7, 20, 25, tzinfo=timezone.utc)
    assert not scheduled.is_final

    final = Game.query.filter_by(espn_id="402").one()
    assert final.is_final
    assert final.winner_team_id == teams["BUF"].id


def test_sync_week_games_is_idempotent(data_sync, teams):
    events = {"events": [_event("401", "KC", "BUF", "2025-09-07T20:25Z")]}

    with patch.object(data_sync, "_make_api_request", return_value=_response(events)):
        data_sync.sync_week_games(1, 2025)
        data_sync.sync_week_games(1, 2025)

    assert Game.query.count() == 1


def test_parse_event_requires_both_sides():
    event = _event("1", "KC", "BUF", "2025-09-07T20:25Z")
    event["competitions"][0]["competitors"].pop()

    assert DataSync.parse_event(event) is None
    assert DataSync.parse_event({"id": "2", "competitions": []}) is None


def test_update_game_scores_settles_final_games(data_sync, db, make_game, user, teams):
    kickoff = datetime.now(timezone.utc) - timedelta(hours=4)
    finished = make_game(kickoff=kickoff, espn_id="501")
    live = make_game(kickoff=kickoff, home="BUF", away="DAL", espn_id="502")
    pick = Pick(user_id=user.id, game_id=finished.id, selected_team_id=teams["BUF"].id)
    db.session.add(pick)
    db.session.commit()

    events = {
        "events": [
            _event("501", "KC", "BUF", kickoff.isoformat(), "17", "24", True, "post"),
            _event("502", "BUF", "DAL", kickoff.isoformat(), "7", "3", False, "in"),
        ]
    }

    with patch.object(data_sync, "_make_api_request", return_value=_response(events)):
        success, message, changed = data_sync.update_game_scores(1, 2025)

    assert success is True
    assert message == "Updated 2 games (1 completed)"
    assert {game.id for game in changed} == {finished.id, live.id}

    assert finished.is_final
    assert finished.winner_team_id == teams["BUF"].id
    assert (pick.is_correct, pick.points) == (True, 1)

    assert not live.is_final
    assert (live.home_score, live.away_score) == (7, 3)
    assert live.winner_team_id is None


def test_update_game_scores_skips_unchanged_and_pregame(data_sync, make_game):
    make_game(espn_id="601")
    events = {"events": [_event("601", "KC", "BUF", "2025-09-07T17:00Z")]}

    with patch.object(data_sync, "_make_api_request", return_value=_response(events)):
        success, message, changed = data_sync.update_game_scores(1, 2025)

    assert success is True
    assert changed == []


def test_update_game_scores_without_pending_games(data_sync):
    with patch.object(data_sync, "_make_api_request") as request:
        success, message, changed = data_sync.update_game_scores(1, 2025)

    request.assert_not_called()
    assert (success, message, changed) == (True, "No incomplete games to update", [])


def test_rate_limit_retries_server_errors(data_sync, monkeypatch):
    monkeypatch.setattr("pickem.utils.data_sync.time.sleep", lambda seconds: None)

    failing = MagicMock(status_code=503, headers={})
    ok = MagicMock(status_code=200, headers={})
    data_sync.session.get = MagicMock(side_effect=[failing, ok])

    response = data_sync._make_api_request("https://example.test/teams")

    assert response is ok
    assert data_sync.session.get.call_count == 2


def test_rate_limit_gives_up_after_retries(data_sync, monkeypatch):
    sleeps = []
    monkeypatch.setattr("pickem.utils.data_sync.time.sleep", sleeps.append)

    limited = MagicMock(status_code=429, headers={"Retry-After": "7"})
    data_sync.session.get = MagicMock(return_value=limited)

    success, message = data_sync.sync_teams()

    assert success is False
    assert message == "Max retries (3) exceeded"
    assert data_sync.session.get.call_count == 3
    assert sleeps.count(7) == 3


def test_rate_limit_status(data_sync, monkeypatch):
    monkeypatch.setattr("pickem.utils.data_sync.time.sleep", lambda seconds: None)
    data_sync.session.get = MagicMock(return_value=MagicMock(status_code=200, headers={}))

    data_sync._make_api_request("https://example.test/teams")
    status = data_sync.get_rate_limit_status()

    assert status["total_requests"] == 1
    assert status["requests_last_minute"] == 1
