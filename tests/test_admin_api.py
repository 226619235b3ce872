from unittest.mock import patch

import pytest

from pickem.models import Pick, Pool


@pytest.fixture
def as_admin(client, login, admin):
    login(admin)
    return client


@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/admin/status"),
        ("post", "/api/admin/sync"),
        ("get", "/api/admin/scheduler"),
        ("get", "/api/admin/cache/stats"),
        ("post", "/api/admin/cache/invalidate"),
        ("get", "/api/admin/pools"),
        ("get", "/api/admin/odds"),
    ],
)
def test_admin_endpoints_reject_regular_users(client, login, user, method, path):
    login(user)

    response = getattr(client, method)(path, json={})

    assert response.status_code == 403
    assert response.get_json()["code"] == "forbidden"


def test_admin_endpoints_require_login(client, app):
    response = client.get("/api/admin/status")

    assert response.status_code == 401


def test_status(as_admin, app, db, make_game, make_user, teams):
    app.config["CURRENT_NFL_SEASON"] = "2025"
    app.config["CURRENT_NFL_WEEK"] = "1"
    game = make_game()
    make_game(home="BUF", away="DAL", week=2)
    for name in ("bob", "carl"):
        picker = make_user(name)
        db.session.add(Pick(user_id=picker.id, game_id=game.id, selected_team_id=teams["KC"].id))
    db.session.commit()

    data = as_admin.get("/api/admin/status").get_json()["data"]

    assert data["season"]["current"] == {"week": 1, "season": 2025}
    assert data["season"]["next"]["week"] == 2
    assert data["season"]["next"]["games_count"] == 1
    assert data["games"]["current_week"] == 1
    assert data["picks"] == {"total": 2, "unique_users": 2, "average_per_user": 1}
    assert data["scheduler"]["is_running"] is False
    assert data["connections"]["total_connections"] == 0


def test_sync_actions(as_admin):
    with patch("pickem.routes.admin.routes.DataSync") as data_sync_cls:
        data_sync = data_sync_cls.return_value
        data_sync.sync_teams.return_value = (True, "Synced 32 teams")
        data_sync.sync_week_games.return_value = (True, "Synced 16 games for Week 3, 2025")
        data_sync.update_game_scores.return_value = (True, "Updated 0 games (0 completed)", [])

        teams = as_admin.post("/api/admin/sync", json={"action": "teams"})
        games = as_admin.post(
            "/api/admin/sync", json={"action": "games", "week": 3, "season": 2025}
        )
        scores = as_admin.post(
            "/api/admin/sync", json={"action": "scores", "week": 3, "season": 2025}
        )

    assert teams.get_json()["message"] == "Synced 32 teams"
    assert games.get_json()["week"] == 3
    data_sync.sync_week_games.assert_called_once_with(3, 2025)
    assert scores.status_code == 200


def test_sync_failure_is_reported(as_admin):
    with patch("pickem.routes.admin.routes.DataSync") as data_sync_cls:
        data_sync_cls.return_value.sync_current_week.return_value = (
            False,
            "Team sync failed: offline",
        )

        response = as_admin.post("/api/admin/sync", json={"action": "full"})

    assert response.status_code == 500
    assert response.get_json() == {
        "success": False,
        "error": "Team sync failed: offline",
        "code": "sync_failed",
    }


def test_sync_rejects_unknown_action(as_admin):
    with patch("pickem.routes.admin.routes.DataSync"):
        response = as_admin.post("/api/admin/sync", json={"action": "bogus"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "Unknown sync action"


def test_scheduler_status(as_admin):
    data = as_admin.get("/api/admin/scheduler").get_json()

    assert data["scheduler"]["is_running"] is False
    assert data["scheduler"]["jobs"] == []


def test_scheduler_actions_validate_input(as_admin):
    unknown = as_admin.post("/api/admin/scheduler", json={"action": "reboot"})
    assert unknown.status_code == 400

    no_job = as_admin.post("/api/admin/scheduler", json={"action": "pause"})
    assert no_job.status_code == 400
    assert no_job.get_json()["error"] == "Job ID required"

    bad_sync = as_admin.post(
        "/api/admin/scheduler", json={"action": "force_sync", "sync_type": "bogus"}
    )
    assert bad_sync.status_code == 500
    assert bad_sync.get_json()["code"] == "scheduler_error"


def test_cache_stats(as_admin):
    as_admin.get("/api/teams")

    stats = as_admin.get("/api/admin/cache/stats").get_json()["stats"]

    assert stats["type"] == "SimpleCache"
    assert stats["tags"]["teams"] == 1


@pytest.mark.parametrize(
    "payload, fragment",
    [
        ({"key": "teams_"}, "Cache key 'teams_' invalidated"),
        ({"tags": ["teams"]}, "Cache entries with tags [teams]"),
        ({"week": 1, "season": 2025}, "week 1, season 2025"),
        ({"gameId": 7}, "game 7"),
        ({"all": True}, "All cache data cleared"),
    ],
)
def test_cache_invalidate(as_admin, payload, fragment):
    response = as_admin.post("/api/admin/cache/invalidate", json=payload)

    assert response.status_code == 200
    assert fragment in response.get_json()["message"]


def test_cache_invalidate_needs_criteria(as_admin):
    response = as_admin.post("/api/admin/cache/invalidate", json={})

    assert response.status_code == 400
    assert response.get_json()["error"] == "No invalidation criteria provided"


def test_create_and_list_pools(as_admin, admin):
    response = as_admin.post(
        "/api/admin/pools",
        json={"name": "Office Pool", "description": "Winner buys lunch", "is_public": True},
    )

    assert response.status_code == 201
    pool = response.get_json()["pool"]
    assert pool["owner_id"] == admin.id
    assert pool["is_public"] is True
    assert pool["member_count"] == 1
    assert len(pool["invite_code"]) == 8

    listed = as_admin.get("/api/admin/pools").get_json()
    assert listed["count"] == 1
    assert Pool.query.one().is_user_member(admin.id)


def test_create_pool_validates_name(as_admin):
    response = as_admin.post("/api/admin/pools", json={"name": "ab"})

    assert response.status_code == 400
    assert (
        response.get_json()["error"] == "Pool name must be between 3 and 100 characters"
    )


def test_odds_status_without_key(as_admin):
    data = as_admin.get("/api/admin/odds").get_json()["data"]

    assert data["configured"] is False
    assert data["provider"] is None


def test_odds_sync_requires_key(as_admin):
    response = as_admin.post("/api/admin/odds", json={})

    assert response.status_code == 400
    assert response.get_json()["code"] == "odds_not_configured"


def test_odds_sync(as_admin):
    with patch("pickem.routes.admin.routes.OddsSync") as odds_sync_cls:
        odds_sync = odds_sync_cls.return_value
        odds_sync.is_configured.return_value = True
        odds_sync.update_week_odds.return_value = (
            True,
            "Updated odds for 2 games in Week 3, 2025",
            2,
        )

        response = as_admin.post("/api/admin/odds", json={"week": 3, "season": 2025})

    assert response.status_code == 200
    assert response.get_json()["games_updated"] == 2
    odds_sync.update_week_odds.assert_called_once_with(3, 2025)


def test_odds_sync_failure(as_admin):
    with patch("pickem.routes.admin.routes.OddsSync") as odds_sync_cls:
        odds_sync = odds_sync_cls.return_value
        odds_sync.is_configured.return_value = True
        odds_sync.update_week_odds.return_value = (False, "HTTP 401", 0)

        response = as_admin.post("/api/admin/odds", json={})

    assert response.status_code == 500
    assert response.get_json()["code"] == "sync_failed"
