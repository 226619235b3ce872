from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from pickem import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Profile information
    name = db.Column(db.String(100))
    image = db.Column(db.String(500))

    # Account status
    is_active = db.Column(db.Boolean, default=True)
    is_admin = db.Column(db.Boolean, default=False)  # Site-wide admin privileges

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    last_login = db.Column(db.DateTime)

    # Relationships
    picks = db.relationship(
        "Pick", back_populates="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    pool_memberships = db.relationship(
        "PoolMember", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    owned_pools = db.relationship("Pool", backref="owner", lazy="dynamic")

    __table_args__ = (db.Index("idx_user_created_at", "created_at"),)

    def __repr__(self):
        return f"<User {self.username}>"

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check password against hash"""
        return check_password_hash(self.password_hash, password)

    @property
    def display_name(self):
        return self.name or self.username

    def update_last_login(self):
        self.last_login = datetime.now(timezone.utc)
        db.session.commit()

    def get_pools(self):
        """Get pools the user belongs to, oldest membership first"""
        from .pool import PoolMember

        return [
            membership.pool
            for membership in self.pool_memberships.order_by(PoolMember.joined_at)
        ]

    def get_recent_picks(self, limit=10):
        from .pick import Pick

        return self.picks.order_by(Pick.created_at.desc(), Pick.id.desc()).limit(limit).all()

    @staticmethod
    def find_by_login(login):
        """Find a user by username or email"""
        return User.query.filter(
            db.or_(User.username == login, User.email == login.lower())
        ).first()

    def to_public_dict(self):
        return {"id": self.id, "name": self.name, "username": self.username}

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "image": self.image,
            "is_admin": self.is_admin,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
