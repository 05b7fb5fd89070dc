from datetime import datetime, timezone

from pickem import db


class Standing(db.Model):
    """Leaderboard row for one user in one scope (global when league_id is NULL)"""

    __tablename__ = "standings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    league_id = db.Column(
        db.Integer, db.ForeignKey("leagues.id", ondelete="CASCADE"), nullable=True
    )

    total_points = db.Column(db.Integer, nullable=False, default=0)
    correct_picks = db.Column(db.Integer, nullable=False, default=0)
    total_picks = db.Column(db.Integer, nullable=False, default=0)
    current_rank = db.Column(db.Integer, nullable=False)

    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("user_id", "league_id", name="unique_user_league_standing"),
        db.Index("idx_standing_scope_rank", "league_id", "current_rank"),
    )

    def __repr__(self):
        return f"<Standing user_id={self.user_id} league_id={self.league_id} rank={self.current_rank}>"

    @staticmethod
    def for_scope(league_id=None):
        """Standing rows for a scope, best rank first"""
        query = Standing.query
        if league_id is None:
            query = query.filter(Standing.league_id.is_(None))
        else:
            query = query.filter(Standing.league_id == league_id)
        return query.order_by(
            Standing.current_rank,
            Standing.correct_picks.desc(),
            Standing.user_id,
        ).all()

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "display_name": self.user.full_name if self.user else None,
            "league_id": self.league_id,
            "total_points": self.total_points,
            "correct_picks": self.correct_picks,
            "total_picks": self.total_picks,
            "current_rank": self.current_rank,
        }
