from datetime import datetime, timezone

from pickem import db


class Pick(db.Model):
    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    # Pick identification
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)

    # Pick details
    selected_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    # Results (settled after game completion)
    is_correct = db.Column(db.Boolean)
    points = db.Column(db.Integer)

    # Timestamps
    created_at = db.Column(
        db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    game = db.relationship("Game", back_populates="picks")
    user = db.relationship("User", back_populates="picks")
    selected_team = db.relationship("Team", foreign_keys=[selected_team_id])

    # One pick per user per game; the upsert in PickValidator targets this key
    __table_args__ = (
        db.UniqueConstraint("user_id", "game_id", name="unique_user_game_pick"),
        db.Index("idx_pick_game", "game_id"),
        db.Index("idx_pick_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f'<Pick user_id={self.user_id} game_id={self.game_id} team={self.selected_team.abbreviation if self.selected_team else "TBD"}>'

    @property
    def week(self):
        """Get the week number from the associated game"""
        return self.game.week if self.game else None

    def update_result(self):
        """Settle pick once its game is final with a winner; ties stay unsettled"""
        if not self.game or not self.game.is_final or not self.game.winner_team_id:
            return False

        self.is_correct = self.selected_team_id == self.game.winner_team_id
        self.points = 1 if self.is_correct else 0
        return True

    def to_dict(self):
        """Convert pick to dictionary for API responses, joined with game and team"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "game_id": self.game_id,
            "selected_team_id": self.selected_team_id,
            "week": self.week,
            "team": self.selected_team.to_dict() if self.selected_team else None,
            "is_correct": self.is_correct,
            "points": self.points,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "game": self.game.to_dict() if self.game else None,
        }
