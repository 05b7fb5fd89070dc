from datetime import datetime, timezone

from pickem import db
from pickem.utils.timezone_utils import ensure_utc, get_utc_time, isoformat_utc

TOTAL_GAMEWEEKS = 38


class Gameweek(db.Model):
    __tablename__ = "gameweeks"

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.Integer, nullable=False, unique=True)

    # Single cutoff for picks and undos across every fixture in the gameweek
    deadline = db.Column(db.DateTime(timezone=True), nullable=False)

    is_current = db.Column(db.Boolean, nullable=False, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    fixtures = db.relationship(
        "Fixture", backref="gameweek", lazy="dynamic", cascade="all, delete-orphan"
    )

    # At most one current gameweek
    __table_args__ = (
        db.CheckConstraint(
            f"number >= 1 AND number <= {TOTAL_GAMEWEEKS}", name="gameweek_number_range"
        ),
        db.Index(
            "uq_gameweek_single_current",
            "is_current",
            unique=True,
            sqlite_where=db.text("is_current = 1"),
            postgresql_where=db.text("is_current"),
        ),
        db.Index("idx_gameweek_deadline", "deadline"),
    )

    def __repr__(self):
        return f"<Gameweek {self.number}>"

    @staticmethod
    def get_current():
        """Get the gameweek currently accepting picks"""
        return Gameweek.query.filter_by(is_current=True).first()

    @staticmethod
    def get_by_number(number):
        return Gameweek.query.filter_by(number=number).first()

    @property
    def deadline_utc(self):
        return ensure_utc(self.deadline)

    def is_open(self, now=None):
        """Picks and undos are allowed strictly before the deadline"""
        now = ensure_utc(now) if now else get_utc_time()
        return now < self.deadline_utc

    def get_fixtures(self):
        from .fixture import Fixture

        return self.fixtures.order_by(Fixture.kickoff_time, Fixture.id).all()

    def to_dict(self, include_fixtures=False, now=None):
        """Convert gameweek to dictionary for API responses"""
        data = {
            "id": self.id,
            "number": self.number,
            "deadline": isoformat_utc(self.deadline),
            "is_current": self.is_current,
            "is_open": self.is_open(now),
        }

        if include_fixtures:
            data["fixtures"] = [fixture.to_dict() for fixture in self.get_fixtures()]

        return data
