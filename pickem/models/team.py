from datetime import datetime, timezone

from pickem import db


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)

    # Team identification
    name = db.Column(db.String(100), nullable=False)
    short_name = db.Column(db.String(10), nullable=False, unique=True, index=True)

    # External ID from the fixture data provider
    external_id = db.Column(db.String(50), unique=True, index=True)

    # Visual elements
    team_color = db.Column(db.String(7))  # Hex color
    logo_url = db.Column(db.String(500))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    home_fixtures = db.relationship(
        "Fixture",
        foreign_keys="Fixture.home_team_id",
        backref=db.backref("home_team", lazy="joined"),
        lazy="dynamic",
    )
    away_fixtures = db.relationship(
        "Fixture",
        foreign_keys="Fixture.away_team_id",
        backref=db.backref("away_team", lazy="joined"),
        lazy="dynamic",
    )

    def __repr__(self):
        return f"<Team {self.short_name}>"

    @staticmethod
    def get_by_short_name(short_name):
        return Team.query.filter_by(short_name=short_name.upper()).first()

    def to_dict(self):
        """Convert team to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "short_name": self.short_name,
            "team_color": self.team_color,
            "logo_url": self.logo_url,
        }
