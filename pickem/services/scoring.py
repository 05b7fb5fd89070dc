"""
Scoring Engine

Turns picks on finished fixtures into GameweekScore rows. Scores are
upserted on (user_id, gameweek_id), and rows whose pick no longer sits on a
finished fixture are removed, so repeated runs over the same fixture data
always leave the same rows behind. The fixture sync can therefore trigger a
pass as often as it likes, including after a score correction.
"""

import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.models import Fixture, Gameweek, GameweekScore, Pick
from pickem.models.fixture import STATUS_FINISHED
from pickem.utils.cache_utils import invalidate_model_cache
from pickem.utils.scoring import calculate_pick_score
from pickem.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)


class ScoringSummary:
    def __init__(self, gameweek_id):
        self.gameweek_id = gameweek_id
        self.fixtures_scored = 0
        self.picks_scored = 0
        self.points_awarded = 0
        self.scores_removed = 0

    @property
    def is_noop(self):
        return self.picks_scored == 0 and self.scores_removed == 0

    def to_dict(self):
        return {
            "gameweek_id": self.gameweek_id,
            "fixtures_scored": self.fixtures_scored,
            "picks_scored": self.picks_scored,
            "points_awarded": self.points_awarded,
            "scores_removed": self.scores_removed,
        }


class ScoringEngine:
    def score_gameweek(self, gameweek_id, commit=True):
        """Score every pick on a finished fixture of the gameweek"""
        summary = ScoringSummary(gameweek_id)

        finished = Fixture.query.filter_by(
            gameweek_id=gameweek_id, status=STATUS_FINISHED
        ).all()

        rows = []
        for fixture in finished:
            picks = fixture.picks.all()
            if picks:
                summary.fixtures_scored += 1

            for pick in picks:
                points, is_correct = calculate_pick_score(pick.picked_team_id, fixture)
                rows.append(
                    {
                        "user_id": pick.user_id,
                        "gameweek_id": gameweek_id,
                        "pick_id": pick.id,
                        "points": points,
                        "is_correct": is_correct,
                    }
                )
                summary.points_awarded += points

        try:
            for row in rows:
                self._upsert_score(row)
            summary.picks_scored = len(rows)

            summary.scores_removed = self._remove_stale_scores(
                gameweek_id, {row["pick_id"] for row in rows}
            )

            if commit:
                db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Scoring failed for gameweek {gameweek_id}: {e}", exc_info=True)
            raise

        if summary.is_noop:
            logger.debug(f"Gameweek {gameweek_id}: nothing to score")
        else:
            invalidate_model_cache("Standing")
            logger.info(
                f"Gameweek {gameweek_id}: scored {summary.picks_scored} picks across "
                f"{summary.fixtures_scored} fixtures, {summary.points_awarded} points, "
                f"{summary.scores_removed} stale scores removed"
            )

        return summary

    def score_all_gameweeks(self):
        """Re-score every gameweek that has at least one finished fixture"""
        gameweek_ids = [
            row.gameweek_id
            for row in db.session.query(Fixture.gameweek_id)
            .filter(Fixture.status == STATUS_FINISHED)
            .distinct()
            .all()
        ]

        # Also revisit gameweeks holding scores, in case a result was reverted
        gameweek_ids.extend(
            row.gameweek_id
            for row in db.session.query(GameweekScore.gameweek_id).distinct().all()
        )

        summaries = []
        for gameweek in (
            Gameweek.query.filter(Gameweek.id.in_(set(gameweek_ids)))
            .order_by(Gameweek.number)
            .all()
        ):
            summaries.append(self.score_gameweek(gameweek.id))

        return summaries

    def _upsert_score(self, row):
        """Insert or overwrite the score keyed by (user_id, gameweek_id)"""
        dialect = db.session.get_bind().dialect.name
        now = get_utc_time()

        if dialect in ("sqlite", "postgresql"):
            insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            stmt = insert(GameweekScore.__table__).values(
                created_at=now, updated_at=now, **row
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "gameweek_id"],
                set_={
                    "pick_id": stmt.excluded.pick_id,
                    "points": stmt.excluded.points,
                    "is_correct": stmt.excluded.is_correct,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            db.session.execute(stmt)
            return

        score = GameweekScore.query.filter_by(
            user_id=row["user_id"], gameweek_id=row["gameweek_id"]
        ).first()
        if score is None:
            score = GameweekScore(user_id=row["user_id"], gameweek_id=row["gameweek_id"])
            db.session.add(score)
        score.pick_id = row["pick_id"]
        score.points = row["points"]
        score.is_correct = row["is_correct"]
        db.session.flush()

    def _remove_stale_scores(self, gameweek_id, scored_pick_ids):
        query = GameweekScore.query.filter(GameweekScore.gameweek_id == gameweek_id)
        if scored_pick_ids:
            query = query.filter(GameweekScore.pick_id.notin_(scored_pick_ids))
        return query.delete(synchronize_session=False)


def picks_awaiting_score(gameweek_id):
    """Picks of a gameweek whose fixture has not finished yet"""
    return (
        Pick.query.join(Fixture, Fixture.id == Pick.fixture_id)
        .filter(Pick.gameweek_id == gameweek_id, Fixture.status != STATUS_FINISHED)
        .all()
    )
