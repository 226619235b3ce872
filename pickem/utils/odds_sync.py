"""
Betting lines from The Odds API

Pulls NFL spreads, totals and moneylines for one bookmaker, matches each
event to a scheduled game by team names and kickoff, and records an
OddsHistory row whenever a game's line moves. Lines stop updating once a
game kicks off. Without an API key every operation is a no-op.
"""

import logging
from datetime import timedelta

import requests
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.models import Game, OddsHistory, Team
from pickem.utils.data_sync import rate_limit_decorator
from pickem.utils.timezone_utils import (
    as_utc,
    get_utc_time,
    parse_iso_datetime,
    to_storage,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "The Odds API"
SPORT_KEY = "americanfootball_nfl"
NOT_CONFIGURED = "Odds API key not configured"

LINE_FIELDS = (
    "home_spread",
    "away_spread",
    "home_moneyline",
    "away_moneyline",
    "over_under",
)

# Max distance between an event's commence_time and the stored kickoff
KICKOFF_TOLERANCE = timedelta(hours=12)


def _outcome(market, name, field):
    for outcome in (market or {}).get("outcomes", []):
        if outcome.get("name") == name:
            return outcome.get(field)
    return None


def _moneyline(value):
    return int(value) if value is not None else None


class OddsSync:
    def __init__(self, api_key=None, base_url=None, bookmaker=None):
        config = current_app.config
        self.api_key = api_key or config.get("ODDS_API_KEY")
        self.base_url = base_url or config.get("ODDS_API_BASE_URL")
        self.bookmaker = bookmaker or config.get("ODDS_BOOKMAKER") or "draftkings"
        self.requests_per_month = config.get("ODDS_REQUESTS_PER_MONTH", 500)

        self.session = requests.Session()
        self.session.headers.update(
            {"Accept": "application/json", "User-Agent": "Pickem/1.0"}
        )

        self.request_count = 0
        self.remaining_requests = None
        self.last_update = None

    def is_configured(self):
        return bool(self.api_key)

    @rate_limit_decorator(max_retries=3, base_delay=2.0)
    def _make_api_request(self, url, params=None):
        self.request_count += 1

        try:
            response = self.session.get(url, params=params, timeout=30)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code
            if status == 429 or status >= 500:
                return e.response
            # The key travels in the query string; log the status only
            logger.error(f"Odds API HTTP error {status}")
            raise

        remaining = response.headers.get("X-Requests-Remaining")
        if remaining:
            try:
                self.remaining_requests = int(float(remaining))
            except ValueError:
                logger.debug(f"Unreadable X-Requests-Remaining: {remaining}")
        return response

    def fetch_odds(self):
        """Raw upcoming NFL events with their bookmaker markets"""
        response = self._make_api_request(
            f"{self.base_url}/sports/{SPORT_KEY}/odds/",
            params={
                "apiKey": self.api_key,
                "regions": "us",
                "markets": "h2h,spreads,totals",
                "oddsFormat": "american",
                "bookmakers": self.bookmaker,
            },
        )
        return response.json()

    def parse_event(self, event):
        """
        Lines for one event from the preferred bookmaker (or the first listed)

        Returns None when the event carries no bookmaker.
        """
        bookmakers = event.get("bookmakers") or []
        bookmaker = next(
            (b for b in bookmakers if b.get("key") == self.bookmaker),
            bookmakers[0] if bookmakers else None,
        )
        if bookmaker is None:
            return None

        markets = {market.get("key"): market for market in bookmaker.get("markets", [])}
        home = event.get("home_team", "")
        away = event.get("away_team", "")

        return {
            "event_id": event.get("id"),
            "home_team": home,
            "away_team": away,
            "commence_time": parse_iso_datetime(event.get("commence_time")),
            "home_spread": _outcome(markets.get("spreads"), home, "point"),
            "away_spread": _outcome(markets.get("spreads"), away, "point"),
            "home_moneyline": _moneyline(_outcome(markets.get("h2h"), home, "price")),
            "away_moneyline": _moneyline(_outcome(markets.get("h2h"), away, "price")),
            "over_under": _outcome(markets.get("totals"), "Over", "point"),
            "bookmaker": bookmaker.get("key"),
        }

    @staticmethod
    def _team_lookup():
        """Lower-cased full name, display name and nickname -> team id"""
        lookup = {}
        for team in Team.query.all():
            for name in (team.name, team.display_name, team.name.split()[-1]):
                lookup.setdefault(name.lower(), team.id)
        return lookup

    @staticmethod
    def _kickoff_matches(game, line):
        if line["commence_time"] is None:
            return True
        return abs(line["commence_time"] - game.kickoff) <= KICKOFF_TOLERANCE

    def _apply(self, game, line, now):
        """Store line on game; False when it matches the last recorded line"""
        latest = game.odds_history.first()
        if latest and all(getattr(latest, f) == line[f] for f in LINE_FIELDS):
            return False

        db.session.add(
            OddsHistory(
                game_id=game.id,
                provider=PROVIDER_NAME,
                recorded_at=to_storage(now),
                **{f: line[f] for f in LINE_FIELDS},
            )
        )
        game.spread = line["home_spread"]
        game.over_under = line["over_under"]
        game.home_moneyline = line["home_moneyline"]
        game.away_moneyline = line["away_moneyline"]
        game.odds_provider = PROVIDER_NAME
        game.odds_updated_at = to_storage(now)
        return True

    def update_week_odds(self, week=None, season=None, now=None):
        """
        Refresh lines for a week's games that have not kicked off

        Returns (success, message, games_updated).
        """
        from pickem.utils.cache_utils import GAMES_TAG, invalidate_by_tags, week_tag
        from pickem.utils.nfl_calendar import get_current_season, get_current_week

        if not self.is_configured():
            return False, NOT_CONFIGURED, 0

        week = week or get_current_week()
        season = season or get_current_season()
        now = as_utc(now) if now is not None else get_utc_time()

        try:
            games = Game.query.filter(
                Game.week == week,
                Game.season == season,
                Game.is_final.is_(False),
                Game.game_time > to_storage(now),
            ).all()
            if not games:
                return True, f"No upcoming games in Week {week}, {season}", 0

            by_teams = {(g.home_team_id, g.away_team_id): g for g in games}
            teams = self._team_lookup()
            updated = 0

            for event in self.fetch_odds():
                line = self.parse_event(event)
                if not line:
                    continue

                key = (
                    teams.get(line["home_team"].lower()),
                    teams.get(line["away_team"].lower()),
                )
                game = by_teams.get(key)
                if game is None or not self._kickoff_matches(game, line):
                    continue

                if self._apply(game, line, now):
                    updated += 1

            db.session.commit()
            self.last_update = now

            if updated:
                invalidate_by_tags([week_tag(week, season), GAMES_TAG])

            message = f"Updated odds for {updated} games in Week {week}, {season}"
            logger.info(message)
            return True, message, updated

        except (requests.exceptions.RequestException, SQLAlchemyError, ValueError) as e:
            db.session.rollback()
            logger.error(f"Error updating odds: {str(e)}")
            return False, str(e), 0

    def get_status(self):
        configured = self.is_configured()
        remaining = self.remaining_requests
        if remaining is None and configured:
            remaining = max(0, self.requests_per_month - self.request_count)

        return {
            "configured": configured,
            "provider": PROVIDER_NAME if configured else None,
            "bookmaker": self.bookmaker,
            "requests_made": self.request_count,
            "remaining_requests": remaining,
            "last_update": self.last_update.isoformat() if self.last_update else None,
        }
