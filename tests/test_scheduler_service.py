from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from pickem.services.scheduler_service import JOB_IDS, LIVE_WINDOW, SchedulerService


@pytest.fixture
def service(app):
    service = SchedulerService()
    service.init_app(app)
    service.data_sync = MagicMock()
    yield service
    service.shutdown()


@pytest.fixture
def current_week(app):
    app.config["CURRENT_NFL_SEASON"] = "2025"
    app.config["CURRENT_NFL_WEEK"] = "1"


def test_init_app_does_not_start_when_disabled(service):
    status = service.get_status()

    assert service.scheduler is not None
    assert status["is_running"] is False
    assert status["jobs"] == []
    assert status["stats"]["total_syncs"] == 0


def test_force_sync_without_app():
    assert SchedulerService().force_sync("live") == (
        False,
        "Scheduler is not initialised",
    )


def test_force_sync_rejects_unknown_type(service):
    success, message = service.force_sync("bogus")

    assert success is False
    assert message == "Unknown sync type: bogus"


def test_live_sync_is_idle_outside_game_window(service, current_week):
    success, _ = service.force_sync("live")

    assert success is True
    service.data_sync.update_game_scores.assert_not_called()
    assert service.sync_stats["total_syncs"] == 0


def test_in_game_window(service, current_week, make_game):
    now = datetime.now(timezone.utc)
    assert not service._in_game_window(now)

    game = make_game(kickoff=now - timedelta(hours=1))
    assert service._in_game_window(now)

    assert not service._in_game_window(now + LIVE_WINDOW + timedelta(hours=1))

    game.set_result(21, 14, True)
    assert not service._in_game_window(now)


def test_live_sync_updates_scores_during_games(service, current_week, make_game):
    make_game(kickoff=datetime.now(timezone.utc) - timedelta(minutes=30))
    service.data_sync.update_game_scores.return_value = (
        True,
        "Updated 1 games (0 completed)",
        [object()],
    )

    service.force_sync("live")

    service.data_sync.update_game_scores.assert_called_once_with()
    assert service.sync_stats["successful_syncs"] == 1
    assert service.sync_stats["games_updated"] == 1
    assert service.get_status()["stats"]["last_sync"] is not None


def test_hourly_sync_records_failures(service):
    service.data_sync.sync_current_week.return_value = (False, "Team sync failed: offline")

    service.force_sync("hourly")

    assert service.sync_stats["failed_syncs"] == 1
    assert service.sync_stats["last_error"] == "Team sync failed: offline"


def test_week_check_uses_calendar(service, app, monkeypatch):
    result = {
        "success": True,
        "games_loaded": 16,
        "message": "Advanced from Week 1 to Week 2. Loaded 16 games.",
    }
    calls = []

    def fake_advance(data_sync):
        calls.append(data_sync)
        return result

    monkeypatch.setattr(
        "pickem.services.scheduler_service.check_and_advance_week", fake_advance
    )

    service.force_sync("week")

    assert calls == [service.data_sync]
    assert service.sync_stats["games_updated"] == 16


def test_pause_unknown_job(service):
    success, message = service.pause_job("nope")

    assert success is False
    assert message.startswith("Failed to pause job")


def test_start_requires_init():
    with pytest.raises(RuntimeError):
        SchedulerService().start()


def test_start_registers_jobs(service):
    service.start()

    status = service.get_status()
    assert status["is_running"] is True
    assert {job["id"] for job in status["jobs"]} == set(JOB_IDS)

    assert service.pause_job("hourly_sync") == (True, "Job hourly_sync paused")
    assert service.resume_job("hourly_sync") == (True, "Job hourly_sync resumed")

    service.stop()
    assert service.get_status()["jobs"] == []


def test_odds_sync_idle_without_key(service):
    service.odds_sync = MagicMock()
    service.odds_sync.is_configured.return_value = False

    service.force_sync("odds")

    service.odds_sync.update_week_odds.assert_not_called()
    assert service.sync_stats["total_syncs"] == 0


def test_odds_sync_records_updates(service):
    service.odds_sync = MagicMock()
    service.odds_sync.is_configured.return_value = True
    service.odds_sync.update_week_odds.return_value = (
        True,
        "Updated odds for 3 games in Week 1, 2025",
        3,
    )

    service.force_sync("odds")

    assert service.sync_stats["games_updated"] == 3
    assert service.get_status()["odds"] is not None
