from datetime import datetime, timezone

from pickem import db
from pickem.utils.timezone_utils import isoformat_utc

STATUS_SCHEDULED = "scheduled"
STATUS_LIVE = "live"
STATUS_FINISHED = "finished"
FIXTURE_STATUSES = (STATUS_SCHEDULED, STATUS_LIVE, STATUS_FINISHED)


class Fixture(db.Model):
    __tablename__ = "fixtures"

    id = db.Column(db.Integer, primary_key=True)
    gameweek_id = db.Column(
        db.Integer, db.ForeignKey("gameweeks.id"), nullable=False, index=True
    )

    # Teams
    home_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    away_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    kickoff_time = db.Column(db.DateTime(timezone=True), nullable=False)

    # Match state, written by the fixture sync process
    status = db.Column(db.String(20), nullable=False, default=STATUS_SCHEDULED)
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    # External ID from the fixture data provider
    external_id = db.Column(db.String(50), unique=True, index=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    picks = db.relationship("Pick", backref="fixture", lazy="dynamic")

    __table_args__ = (
        db.CheckConstraint("home_team_id != away_team_id", name="different_teams"),
        db.CheckConstraint(
            "status IN ('scheduled', 'live', 'finished')", name="fixture_status_valid"
        ),
        db.CheckConstraint(
            "status != 'finished' OR (home_score IS NOT NULL AND away_score IS NOT NULL)",
            name="finished_fixture_has_scores",
        ),
        db.Index("idx_fixture_gameweek_status", "gameweek_id", "status"),
    )

    def __repr__(self):
        return f'<Fixture {self.home_team.short_name if self.home_team else "TBD"} v {self.away_team.short_name if self.away_team else "TBD"}>'

    @property
    def is_finished(self):
        return self.status == STATUS_FINISHED

    def involves(self, team_id):
        return team_id in (self.home_team_id, self.away_team_id)

    def get_team_score(self, team_id):
        """Get score for a specific team"""
        if team_id == self.home_team_id:
            return self.home_score
        elif team_id == self.away_team_id:
            return self.away_score
        return None

    def get_opponent_id(self, team_id):
        """Get opponent team id for a given team"""
        if team_id == self.home_team_id:
            return self.away_team_id
        elif team_id == self.away_team_id:
            return self.home_team_id
        return None

    def record_result(self, home_score, away_score, status=STATUS_FINISHED):
        """Record a live or final score from the sync process"""
        if status not in FIXTURE_STATUSES:
            raise ValueError(f"Unknown fixture status: {status}")
        if status == STATUS_FINISHED and (home_score is None or away_score is None):
            raise ValueError("A finished fixture needs both scores")

        self.home_score = home_score
        self.away_score = away_score
        self.status = status

    def to_dict(self):
        """Convert fixture to dictionary for API responses"""
        return {
            "id": self.id,
            "gameweek_id": self.gameweek_id,
            "home_team": self.home_team.to_dict() if self.home_team else None,
            "away_team": self.away_team.to_dict() if self.away_team else None,
            "kickoff_time": isoformat_utc(self.kickoff_time),
            "status": self.status,
            "home_score": self.home_score,
            "away_score": self.away_score,
        }
