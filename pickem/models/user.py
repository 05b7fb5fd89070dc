import secrets
from datetime import datetime, timezone

from flask_login import UserMixin

from pickem import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(100))

    # Bearer token issued by the auth provider integration
    api_token = db.Column(db.String(64), unique=True, nullable=False, index=True)

    # Account status
    is_active = db.Column(db.Boolean, default=True)
    is_admin = db.Column(db.Boolean, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    picks = db.relationship(
        "Pick", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    league_memberships = db.relationship(
        "LeagueMember", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )
    created_leagues = db.relationship("League", backref="creator", lazy="dynamic")

    def __repr__(self):
        return f"<User {self.username}>"

    def __init__(self, **kwargs):
        super(User, self).__init__(**kwargs)
        if not self.api_token:
            self.api_token = secrets.token_urlsafe(32)

    @property
    def full_name(self):
        return self.display_name or self.username

    @staticmethod
    def get_by_token(token):
        if not token:
            return None
        return User.query.filter_by(api_token=token, is_active=True).first()

    def get_league_ids(self):
        return [membership.league_id for membership in self.league_memberships.all()]

    def to_dict(self):
        """Convert user to dictionary for API responses"""
        return {
            "id": self.id,
            "username": self.username,
            "display_name": self.full_name,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
