from datetime import datetime, timezone

from pickem import db
from pickem.utils.timezone_utils import as_utc, format_game_time, get_utc_time


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # Schedule keys
    week = db.Column(db.Integer, nullable=False)
    season = db.Column(db.Integer, nullable=False)

    # Teams
    home_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    away_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    # Scheduled kickoff, stored in UTC
    game_time = db.Column(db.DateTime, nullable=False)

    # Result
    is_final = db.Column(db.Boolean, default=False, nullable=False)
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)
    winner_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"))

    # External IDs for API integration
    espn_id = db.Column(db.String(50), unique=True, index=True)

    # Betting lines; spread is the home team line (negative = home favored)
    spread = db.Column(db.Float)
    over_under = db.Column(db.Float)
    home_moneyline = db.Column(db.Integer)
    away_moneyline = db.Column(db.Integer)
    odds_provider = db.Column(db.String(50))
    odds_updated_at = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    picks = db.relationship(
        "Pick", back_populates="game", lazy="dynamic", cascade="all, delete-orphan"
    )
    winner_team = db.relationship("Team", foreign_keys=[winner_team_id])
    odds_history = db.relationship(
        "OddsHistory",
        back_populates="game",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OddsHistory.recorded_at.desc()",
    )

    __table_args__ = (
        db.Index("idx_game_season_week", "season", "week"),
        db.Index("idx_game_time", "game_time"),
        db.UniqueConstraint(
            "week", "season", "home_team_id", "away_team_id", name="unique_game_matchup"
        ),
        db.CheckConstraint("home_team_id != away_team_id", name="different_teams"),
    )

    def __repr__(self):
        return f'<Game {self.away_team.abbreviation if self.away_team else "TBD"} @ {self.home_team.abbreviation if self.home_team else "TBD"} Week {self.week}>'

    @property
    def kickoff(self):
        """Scheduled start as an aware UTC datetime"""
        return as_utc(self.game_time)

    def has_started(self, now=None):
        """Check if game has started; kickoff itself counts as started"""
        if not self.game_time:
            return False
        now = as_utc(now) if now is not None else get_utc_time()
        return self.kickoff <= now

    def is_pickable(self, now=None):
        """Check if game is available for picks (hasn't started yet)"""
        return not self.has_started(now)

    def status(self, now=None):
        """Get game status as string"""
        if self.is_final:
            return "completed"
        if self.has_started(now):
            return "in_progress"
        return "scheduled"

    def is_participant(self, team_id):
        return team_id in (self.home_team_id, self.away_team_id)

    def set_result(self, home_score, away_score, is_final):
        """Record scores and derive the winner; ties have no winner"""
        self.home_score = home_score
        self.away_score = away_score
        self.is_final = is_final
        self.winner_team_id = None

        if is_final and home_score is not None and away_score is not None:
            if home_score > away_score:
                self.winner_team_id = self.home_team_id
            elif away_score > home_score:
                self.winner_team_id = self.away_team_id

    def get_picks_count(self):
        """Get count of picks for each team"""
        home_picks = self.picks.filter_by(selected_team_id=self.home_team_id).count()
        away_picks = self.picks.filter_by(selected_team_id=self.away_team_id).count()

        return {
            "home_team": home_picks,
            "away_team": away_picks,
            "total": home_picks + away_picks,
        }

    @staticmethod
    def get_games_for_week(week, season):
        """Get all games for a specific week with eager loading"""
        from sqlalchemy.orm import joinedload

        return (
            Game.query.filter_by(week=week, season=season)
            .options(joinedload(Game.home_team), joinedload(Game.away_team))
            .order_by(Game.game_time)
            .all()
        )

    def to_dict(self, include_picks=False):
        """Convert game to dictionary for API responses"""
        data = {
            "id": self.id,
            "espn_id": self.espn_id,
            "week": self.week,
            "season": self.season,
            "game_time": self.kickoff.isoformat() if self.game_time else None,
            "local_game_time": format_game_time(self.game_time),
            "home_team_id": self.home_team_id,
            "away_team_id": self.away_team_id,
            "home_team": self.home_team.to_dict() if self.home_team else None,
            "away_team": self.away_team.to_dict() if self.away_team else None,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "is_final": self.is_final,
            "winner_team_id": self.winner_team_id,
            "spread": self.spread,
            "over_under": self.over_under,
            "home_moneyline": self.home_moneyline,
            "away_moneyline": self.away_moneyline,
            "odds_provider": self.odds_provider,
            "odds_updated_at": (
                as_utc(self.odds_updated_at).isoformat() if self.odds_updated_at else None
            ),
            "is_pickable": self.is_pickable(),
            "status": self.status(),
        }

        if include_picks:
            data["picks"] = [
                {
                    "id": pick.id,
                    "user": pick.user.to_public_dict() if pick.user else None,
                    "selected_team_id": pick.selected_team_id,
                    "team": pick.selected_team.to_dict() if pick.selected_team else None,
                }
                for pick in self.picks.all()
            ]
            data["picks_count"] = self.get_picks_count()

        return data
