from datetime import datetime, timezone

from pickem import db


class LeagueMember(db.Model):
    __tablename__ = "league_members"

    id = db.Column(db.Integer, primary_key=True)
    league_id = db.Column(
        db.Integer, db.ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("league_id", "user_id", name="unique_league_member"),
        db.Index("idx_league_member_user", "user_id"),
    )

    def __repr__(self):
        return f"<LeagueMember user_id={self.user_id} league_id={self.league_id}>"

    def to_dict(self):
        return {
            "league_id": self.league_id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }
