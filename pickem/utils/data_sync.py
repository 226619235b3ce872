import logging
import time
from collections import deque
from functools import wraps

import requests
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.models import Game, Team
from pickem.utils.timezone_utils import parse_iso_datetime, to_storage

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://site.api.espn.com/apis/site/v2/sports/football/nfl"
REGULAR_SEASON_TYPE = 2


def rate_limit_decorator(max_retries=3, base_delay=1.0, backoff_factor=2.0):
    """
    Retry a request method on 429, 5xx and connection-level failures

    Waits base_delay * backoff_factor**attempt between tries (or Retry-After
    on 429). Raises RetryError when every attempt got a retryable status.
    """

    def backoff(attempt):
        return base_delay * (backoff_factor**attempt)

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            for attempt in range(max_retries):
                try:
                    response = func(self, *args, **kwargs)
                except requests.exceptions.RequestException as e:
                    if attempt == max_retries - 1:
                        raise
                    logger.warning(
                        f"Request failed: {e}. Retry {attempt + 1}/{max_retries} in {backoff(attempt)}s"
                    )
                    time.sleep(backoff(attempt))
                    continue

                status = getattr(response, "status_code", 200)
                if status == 429:
                    delay = int(response.headers.get("Retry-After", backoff(attempt)))
                elif status >= 500:
                    delay = backoff(attempt)
                else:
                    return response

                logger.warning(
                    f"API returned {status}. Retry {attempt + 1}/{max_retries} in {delay}s"
                )
                time.sleep(delay)

            raise requests.exceptions.RetryError(f"Max retries ({max_retries}) exceeded")

        return wrapper

    return decorator


def _score(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class DataSync:
    """
    Pulls NFL teams, schedules and scores from the ESPN public API
    """

    min_request_interval = 0.5
    max_requests_per_minute = 60

    def __init__(self, api_base_url=None):
        self.api_base_url = (
            api_base_url
            or current_app.config.get("NFL_API_BASE_URL")
            or DEFAULT_API_BASE_URL
        )
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "Pickem/1.0"})

        self.request_count = 0
        self.last_request_time = 0.0
        self.request_timestamps = deque()

    def _prune_timestamps(self, now):
        while self.request_timestamps and now - self.request_timestamps[0] >= 60:
            self.request_timestamps.popleft()

    def _enforce_rate_limit(self):
        """Block until a request is allowed by the per-minute and spacing limits"""
        now = time.time()
        self._prune_timestamps(now)

        if len(self.request_timestamps) >= self.max_requests_per_minute:
            wait = 60 - (now - self.request_timestamps[0])
            if wait > 0:
                logger.info(f"Rate limit reached. Sleeping for {wait:.1f}s")
                time.sleep(wait)
            self.request_timestamps.clear()

        since_last = now - self.last_request_time
        if since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - since_last)

        self.last_request_time = time.time()
        self.request_timestamps.append(self.last_request_time)
        self.request_count += 1

    @rate_limit_decorator(max_retries=3, base_delay=2.0)
    def _make_api_request(self, url, params=None):
        self._enforce_rate_limit()

        try:
            response = self.session.get(url, params=params, timeout=30)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            # 429 and 5xx go back to the decorator for a retry
            status = e.response.status_code
            if status == 429 or status >= 500:
                return e.response
            logger.error(f"HTTP error {status}: {url}")
            raise
        except requests.exceptions.RequestException as e:
            logger.warning(f"{type(e).__name__} for {url}")
            raise
        return response

    def get_rate_limit_status(self):
        self._prune_timestamps(time.time())
        return {
            "total_requests": self.request_count,
            "requests_last_minute": len(self.request_timestamps),
            "max_requests_per_minute": self.max_requests_per_minute,
            "min_request_interval": self.min_request_interval,
        }

    def fetch_teams(self):
        """Raw team entries from the ESPN teams endpoint"""
        response = self._make_api_request(f"{self.api_base_url}/teams")
        data = response.json()
        leagues = (data.get("sports") or [{}])[0].get("leagues") or [{}]
        return [entry.get("team", {}) for entry in leagues[0].get("teams", [])]

    def fetch_week_events(self, week, season):
        """Raw scoreboard events for a regular-season week"""
        response = self._make_api_request(
            f"{self.api_base_url}/scoreboard",
            params={"dates": season, "seasontype": REGULAR_SEASON_TYPE, "week": week},
        )
        return response.json().get("events", [])

    @staticmethod
    def parse_event(event):
        """
        Flatten a scoreboard event into the fields a Game needs

        Returns None when the event lacks a competition or either side.
        """
        competitions = event.get("competitions") or []
        if not competitions:
            return None

        competition = competitions[0]
        competitors = competition.get("competitors", [])
        home = next((c for c in competitors if c.get("homeAway") == "home"), None)
        away = next((c for c in competitors if c.get("homeAway") == "away"), None)
        if not home or not away:
            return None

        status = competition.get("status", {}).get("type", {})
        return {
            "espn_id": str(event.get("id", "")),
            "game_time": parse_iso_datetime(competition.get("date") or event.get("date")),
            "home_abbreviation": home.get("team", {}).get("abbreviation", "").upper(),
            "away_abbreviation": away.get("team", {}).get("abbreviation", "").upper(),
            "home_score": _score(home.get("score")),
            "away_score": _score(away.get("score")),
            "is_final": bool(status.get("completed", False)),
            "state": status.get("state"),
        }

    def sync_teams(self):
        """Upsert teams by abbreviation"""
        try:
            teams = []
            for team_info in self.fetch_teams():
                abbreviation = team_info.get("abbreviation", "").upper()
                if not abbreviation:
                    continue

                team = Team.query.filter_by(abbreviation=abbreviation).first()
                if not team:
                    team = Team(abbreviation=abbreviation)
                    db.session.add(team)

                location = team_info.get("location", "")
                nickname = team_info.get("name", "")
                team.name = f"{location} {nickname}".strip() or abbreviation
                team.display_name = team_info.get("displayName") or team.name
                team.espn_id = str(team_info.get("id", "")) or None

                if team_info.get("logos"):
                    team.logo_url = team_info["logos"][0].get("href")
                if team_info.get("color"):
                    team.color = f"#{team_info['color']}"

                teams.append(team)

            db.session.commit()
            logger.info(f"Synced {len(teams)} teams")
            return True, f"Synced {len(teams)} teams"

        except (requests.exceptions.RequestException, SQLAlchemyError) as e:
            db.session.rollback()
            logger.error(f"Error syncing teams: {str(e)}")
            return False, str(e)

    def sync_week_games(self, week, season):
        """Upsert a week's games by ESPN id, skipping games with unknown teams"""
        try:
            teams = {team.abbreviation: team for team in Team.query.all()}
            synced = 0
            skipped = 0

            for event in self.fetch_week_events(week, season):
                parsed = self.parse_event(event)
                if not parsed or not parsed["game_time"]:
                    continue

                home_team = teams.get(parsed["home_abbreviation"])
                away_team = teams.get(parsed["away_abbreviation"])
                if not home_team or not away_team:
                    logger.info(
                        f"Skipping game: Missing team data for "
                        f"{parsed['home_abbreviation']} vs {parsed['away_abbreviation']}"
                    )
                    skipped += 1
                    continue

                game = Game.query.filter_by(espn_id=parsed["espn_id"]).first()
                if not game:
                    game = Game(
                        espn_id=parsed["espn_id"],
                        week=week,
                        season=season,
                        home_team_id=home_team.id,
                        away_team_id=away_team.id,
                    )
                    db.session.add(game)

                game.game_time = to_storage(parsed["game_time"])
                if parsed["is_final"]:
                    game.set_result(parsed["home_score"], parsed["away_score"], True)

                synced += 1

            db.session.commit()
            self._invalidate_week(week, season)

            message = f"Synced {synced} games for Week {week}, {season}"
            if skipped:
                message += f" ({skipped} skipped)"
            logger.info(message)
            return True, message

        except (requests.exceptions.RequestException, SQLAlchemyError) as e:
            db.session.rollback()
            logger.error(f"Error syncing week {week} games: {str(e)}")
            return False, str(e)

    def update_game_scores(self, week=None, season=None):
        """
        Refresh non-final games of a week from the scoreboard

        Newly final games get a winner and their picks settled. Returns
        (success, message, changed_games).
        """
        from pickem.socketio_handlers import broadcast_game_final, broadcast_score_update
        from pickem.utils.nfl_calendar import get_current_season, get_current_week
        from pickem.utils.scoring import update_pick_results

        week = week or get_current_week()
        season = season or get_current_season()

        try:
            pending = Game.query.filter_by(week=week, season=season, is_final=False).all()
            if not pending:
                return True, "No incomplete games to update", []

            events = {}
            for event in self.fetch_week_events(week, season):
                parsed = self.parse_event(event)
                if parsed:
                    events[parsed["espn_id"]] = parsed

            changed = []
            completed = []
            for game in pending:
                parsed = events.get(game.espn_id)
                if not parsed or parsed["state"] == "pre":
                    continue

                if (
                    parsed["home_score"] == game.home_score
                    and parsed["away_score"] == game.away_score
                    and parsed["is_final"] == game.is_final
                ):
                    continue

                game.set_result(
                    parsed["home_score"], parsed["away_score"], parsed["is_final"]
                )
                changed.append(game)

                if game.is_final:
                    update_pick_results(game)
                    completed.append(game)

            db.session.commit()

            if changed:
                self._invalidate_week(week, season)
                for game in changed:
                    if game in completed:
                        broadcast_game_final(game)
                    else:
                        broadcast_score_update(game)

            message = f"Updated {len(changed)} games ({len(completed)} completed)"
            logger.info(message)
            return True, message, changed

        except (requests.exceptions.RequestException, SQLAlchemyError) as e:
            db.session.rollback()
            logger.error(f"Error updating game scores: {str(e)}")
            return False, str(e), []

    def sync_current_week(self):
        """Teams, then the current week's games, then its scores"""
        from pickem.utils.nfl_calendar import get_current_season, get_current_week

        week = get_current_week()
        season = get_current_season()
        messages = []

        success, message = self.sync_teams()
        messages.append(message)
        if not success:
            return False, f"Team sync failed: {message}"

        success, message = self.sync_week_games(week, season)
        messages.append(message)
        if not success:
            return False, f"Game sync failed: {message}"

        success, message, _ = self.update_game_scores(week, season)
        messages.append(message)
        if not success:
            return False, f"Score update failed: {message}"

        return True, "; ".join(messages)

    def _invalidate_week(self, week, season):
        from pickem.utils.cache_utils import GAMES_TAG, LEADERBOARD_TAG, invalidate_by_tags, week_tag

        invalidate_by_tags([week_tag(week, season), GAMES_TAG, LEADERBOARD_TAG])
