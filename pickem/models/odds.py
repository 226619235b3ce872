from datetime import datetime, timezone

from pickem import db


class OddsHistory(db.Model):
    """One bookmaker line snapshot for a game, kept each time the line moves"""

    __tablename__ = "odds_history"

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(
        db.Integer, db.ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )

    home_spread = db.Column(db.Float)
    away_spread = db.Column(db.Float)
    home_moneyline = db.Column(db.Integer)
    away_moneyline = db.Column(db.Integer)
    over_under = db.Column(db.Float)

    provider = db.Column(db.String(50), nullable=False)
    recorded_at = db.Column(
        db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    game = db.relationship("Game", back_populates="odds_history")

    __table_args__ = (db.Index("idx_odds_game_recorded", "game_id", "recorded_at"),)

    def __repr__(self):
        return f"<OddsHistory game={self.game_id} spread={self.home_spread}>"

    def to_dict(self):
        return {
            "id": self.id,
            "game_id": self.game_id,
            "home_spread": self.home_spread,
            "away_spread": self.away_spread,
            "home_moneyline": self.home_moneyline,
            "away_moneyline": self.away_moneyline,
            "over_under": self.over_under,
            "provider": self.provider,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }
