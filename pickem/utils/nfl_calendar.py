"""
NFL calendar helpers

Resolves the current week and season, either from configuration overrides
(CURRENT_NFL_WEEK / CURRENT_NFL_SEASON) or from the date relative to the
season kickoff.
"""

import logging
from datetime import date, datetime, timedelta

from flask import current_app

from pickem.utils.timezone_utils import as_utc, get_utc_time

logger = logging.getLogger(__name__)

REGULAR_SEASON_WEEKS = 18


def _today(today=None):
    if today is None:
        return get_utc_time().date()
    if isinstance(today, datetime):
        return as_utc(today).date()
    return today


def season_kickoff(season):
    """Week 1 kickoff: NFL_SEASON_START if configured, else the Thursday after Labor Day"""
    configured = current_app.config.get("NFL_SEASON_START")
    if configured:
        kickoff = date.fromisoformat(configured)
        if kickoff.year == season:
            return kickoff

    # Labor Day is the first Monday of September
    first = date(season, 9, 1)
    labor_day = first + timedelta(days=(0 - first.weekday()) % 7)
    return labor_day + timedelta(days=3)


def get_current_season(today=None):
    """Season year; the season spans two calendar years and starts in September"""
    override = current_app.config.get("CURRENT_NFL_SEASON")
    if override:
        return int(override)

    today = _today(today)
    if today.month >= 9:
        return today.year
    return today.year - 1


def get_current_week(today=None):
    """Current regular-season week, clamped to 1..18"""
    week_override = current_app.config.get("CURRENT_NFL_WEEK")
    if week_override and current_app.config.get("CURRENT_NFL_SEASON"):
        return int(week_override)

    today = _today(today)
    kickoff = season_kickoff(get_current_season(today))

    if today < kickoff:
        return 1

    weeks_since_start = (today - kickoff).days // 7
    return max(1, min(weeks_since_start + 1, REGULAR_SEASON_WEEKS))


def get_configured_week():
    """Week the deployment believes is current (defaults to 1)"""
    return int(current_app.config.get("CURRENT_NFL_WEEK") or 1)


def get_next_week_preview(week=None, today=None):
    """Preview of the following week: number, season, first kickoff and game count"""
    from pickem.models import Game

    next_week = (week or get_current_week(today)) + 1
    season = get_current_season(today)

    games_query = Game.query.filter_by(week=next_week, season=season)
    first_game = games_query.order_by(Game.game_time).first()

    return {
        "week": next_week,
        "season": season,
        "starts_at": first_game.kickoff.isoformat() if first_game else None,
        "games_count": games_query.count(),
    }


def check_and_advance_week(data_sync=None, today=None):
    """Load games for the computed week when it is ahead of the configured week"""
    from pickem.models import Game

    current_week = get_current_week(today)
    season = get_current_season(today)
    configured_week = get_configured_week()

    result = {
        "previous_week": configured_week,
        "current_week": current_week,
        "season": season,
        "games_loaded": 0,
        "success": False,
        "message": "",
    }

    if current_week > configured_week:
        if data_sync is None:
            from pickem.utils.data_sync import DataSync

            data_sync = DataSync()

        success, message = data_sync.sync_week_games(current_week, season)
        result["success"] = success
        if success:
            result["games_loaded"] = Game.query.filter_by(
                week=current_week, season=season
            ).count()
            result["message"] = (
                f"Advanced from Week {configured_week} to Week {current_week}. "
                f"Loaded {result['games_loaded']} games."
            )
            logger.info(result["message"])
        else:
            result["message"] = f"Failed to advance to Week {current_week}: {message}"
            logger.error(result["message"])
    elif current_week == configured_week:
        result["success"] = True
        result["message"] = f"Already on current Week {current_week}"
    else:
        result["success"] = True
        result["message"] = (
            f"Configured week ahead: Week {configured_week}, calculated: Week {current_week}"
        )

    return result
