from datetime import datetime, timezone

from pickem import db


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)

    # Team identification
    name = db.Column(db.String(100), nullable=False)
    display_name = db.Column(db.String(100), nullable=False)
    abbreviation = db.Column(db.String(10), nullable=False, unique=True, index=True)

    # External IDs for API integration
    espn_id = db.Column(db.String(20), unique=True, index=True)

    # Visual elements
    logo_url = db.Column(db.String(500))
    color = db.Column(db.String(7))  # Hex color

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    home_games = db.relationship(
        "Game",
        foreign_keys="Game.home_team_id",
        backref=db.backref("home_team", lazy="joined"),
        lazy="dynamic",
    )
    away_games = db.relationship(
        "Game",
        foreign_keys="Game.away_team_id",
        backref=db.backref("away_team", lazy="joined"),
        lazy="dynamic",
    )

    def __repr__(self):
        return f"<Team {self.abbreviation}>"

    @staticmethod
    def get_by_abbreviation(abbreviation):
        """Get team by abbreviation"""
        return Team.query.filter_by(abbreviation=abbreviation.upper()).first()

    @staticmethod
    def get_all():
        return Team.query.order_by(Team.name).all()

    def to_dict(self):
        """Convert team to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "abbreviation": self.abbreviation,
            "logo_url": self.logo_url,
            "color": self.color,
        }
