import secrets
from datetime import datetime, timezone

from pickem import db


class Pool(db.Model):
    __tablename__ = "pools"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    is_public = db.Column(db.Boolean, default=False)

    # Code for easy joining
    invite_code = db.Column(db.String(8), unique=True, nullable=False, index=True)

    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    members = db.relationship(
        "PoolMember", backref="pool", lazy="dynamic", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Pool {self.name}>"

    def __init__(self, **kwargs):
        super(Pool, self).__init__(**kwargs)
        if not self.invite_code:
            self.invite_code = self.generate_invite_code()

    @staticmethod
    def generate_invite_code():
        """Generate a unique 8-character invite code"""
        while True:
            code = secrets.token_urlsafe(6)[:8].upper()
            if not Pool.query.filter_by(invite_code=code).first():
                return code

    def is_user_member(self, user_id):
        return self.members.filter_by(user_id=user_id).first() is not None

    def add_member(self, user_id):
        """Add a user to the pool; returns the membership"""
        membership = self.members.filter_by(user_id=user_id).first()
        if membership:
            return membership

        membership = PoolMember(user_id=user_id, pool_id=self.id)
        db.session.add(membership)
        return membership

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_public": self.is_public,
            "invite_code": self.invite_code,
            "owner_id": self.owner_id,
            "member_count": self.members.count(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PoolMember(db.Model):
    __tablename__ = "pool_members"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    pool_id = db.Column(db.Integer, db.ForeignKey("pools.id"), nullable=False)
    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("user_id", "pool_id", name="unique_user_pool"),
    )

    def __repr__(self):
        return f"<PoolMember user_id={self.user_id} pool_id={self.pool_id}>"
