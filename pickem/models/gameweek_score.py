from datetime import datetime, timezone

from pickem import db


class GameweekScore(db.Model):
    __tablename__ = "gameweek_scores"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    gameweek_id = db.Column(db.Integer, db.ForeignKey("gameweeks.id"), nullable=False)
    pick_id = db.Column(
        db.Integer, db.ForeignKey("picks.id", ondelete="CASCADE"), nullable=False
    )

    points = db.Column(db.Integer, nullable=False, default=0)
    # True only for an outright win; a draw earns a point but is not correct
    is_correct = db.Column(db.Boolean, nullable=False, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "gameweek_id", name="unique_user_gameweek_score"),
        db.CheckConstraint("points IN (0, 1, 3)", name="gameweek_score_points_valid"),
        db.Index("idx_score_gameweek", "gameweek_id"),
    )

    def __repr__(self):
        return f"<GameweekScore user_id={self.user_id} gameweek_id={self.gameweek_id} points={self.points}>"

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "gameweek_id": self.gameweek_id,
            "pick_id": self.pick_id,
            "points": self.points,
            "is_correct": self.is_correct,
        }
