from datetime import datetime, timezone

from pickem import db
from pickem.utils.timezone_utils import isoformat_utc

# A team may back at most this many of a user's picks in a season
MAX_TEAM_USES = 2


class Pick(db.Model):
    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    # Pick identification
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    gameweek_id = db.Column(db.Integer, db.ForeignKey("gameweeks.id"), nullable=False)
    fixture_id = db.Column(db.Integer, db.ForeignKey("fixtures.id"), nullable=False)

    # Pick details
    picked_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    # Which of the user's uses of this team the pick occupies (1..MAX_TEAM_USES)
    team_use_slot = db.Column(db.Integer, nullable=False, default=1)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    picked_team = db.relationship("Team", foreign_keys=[picked_team_id])
    gameweek = db.relationship("Gameweek", foreign_keys=[gameweek_id])
    score = db.relationship(
        "GameweekScore",
        backref="pick",
        uselist=False,
        cascade="all, delete-orphan",
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint("user_id", "gameweek_id", name="unique_user_gameweek_pick"),
        db.UniqueConstraint(
            "user_id", "picked_team_id", "team_use_slot", name="unique_user_team_slot"
        ),
        db.CheckConstraint(
            f"team_use_slot >= 1 AND team_use_slot <= {MAX_TEAM_USES}",
            name="team_use_slot_range",
        ),
        db.Index("idx_pick_fixture", "fixture_id"),
        db.Index("idx_pick_user_team", "user_id", "picked_team_id"),
    )

    def __repr__(self):
        return f'<Pick user_id={self.user_id} gameweek_id={self.gameweek_id} team={self.picked_team.short_name if self.picked_team else "TBD"}>'

    @staticmethod
    def get_for_gameweek(user_id, gameweek_id):
        """Get the user's pick for a gameweek, if any"""
        return Pick.query.filter_by(user_id=user_id, gameweek_id=gameweek_id).first()

    @staticmethod
    def count_team_uses(user_id, team_id):
        """Count the user's picks backing a team across the season"""
        return Pick.query.filter_by(user_id=user_id, picked_team_id=team_id).count()

    @staticmethod
    def used_slots(user_id, team_id):
        rows = (
            db.session.query(Pick.team_use_slot)
            .filter(Pick.user_id == user_id, Pick.picked_team_id == team_id)
            .all()
        )
        return {row.team_use_slot for row in rows}

    @staticmethod
    def get_user_picks(user_id):
        """Get all picks by a user, in gameweek order"""
        from .gameweek import Gameweek

        return (
            Pick.query.filter_by(user_id=user_id)
            .join(Gameweek, Gameweek.id == Pick.gameweek_id)
            .order_by(Gameweek.number)
            .all()
        )

    def to_dict(self):
        """Convert pick to dictionary for API responses"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "gameweek_id": self.gameweek_id,
            "gameweek": self.gameweek.number if self.gameweek else None,
            "fixture_id": self.fixture_id,
            "picked_team": self.picked_team.to_dict() if self.picked_team else None,
            "created_at": isoformat_utc(self.created_at),
            "points": self.score.points if self.score else None,
            "is_correct": self.score.is_correct if self.score else None,
        }
