import secrets
from datetime import datetime, timezone

from pickem import db


class League(db.Model):
    __tablename__ = "leagues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)

    # League settings
    is_public = db.Column(db.Boolean, default=False)
    max_members = db.Column(db.Integer, nullable=True)  # None means no cap

    # Code for easy joining
    invite_code = db.Column(db.String(8), unique=True, nullable=False, index=True)

    # Creator and timestamps
    creator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    members = db.relationship(
        "LeagueMember", backref="league", lazy="dynamic", cascade="all, delete-orphan"
    )
    standings = db.relationship(
        "Standing", backref="league", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.CheckConstraint(
            "max_members IS NULL OR max_members > 0", name="league_max_members_positive"
        ),
        db.Index("idx_league_creator", "creator_id"),
    )

    def __repr__(self):
        return f"<League {self.name}>"

    def __init__(self, **kwargs):
        super(League, self).__init__(**kwargs)
        if not self.invite_code:
            self.invite_code = self.generate_invite_code()

    @staticmethod
    def generate_invite_code():
        """Generate a unique 8-character invite code"""
        while True:
            code = secrets.token_hex(4).upper()
            if not League.query.filter_by(invite_code=code).first():
                return code

    @staticmethod
    def get_by_invite_code(code):
        return League.query.filter_by(invite_code=code.strip().upper()).first()

    def get_member_ids(self):
        return [membership.user_id for membership in self.members.all()]

    def get_member_count(self):
        return self.members.count()

    def is_full(self):
        """Check if league has reached maximum capacity"""
        if self.max_members is None:
            return False
        return self.get_member_count() >= self.max_members

    def is_user_member(self, user_id):
        return self.members.filter_by(user_id=user_id).first() is not None

    def to_dict(self, include_invite_code=False):
        """Convert league to dictionary for API responses"""
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_public": self.is_public,
            "max_members": self.max_members,
            "member_count": self.get_member_count(),
            "creator_id": self.creator_id,
        }
        if include_invite_code:
            data["invite_code"] = self.invite_code
        return data
