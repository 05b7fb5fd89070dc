"""
Gameweek administration: which gameweek accepts picks, and moving on once
every fixture of it has finished.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.models import Fixture, Gameweek
from pickem.models.fixture import STATUS_FINISHED
from pickem.services.scoring import ScoringEngine
from pickem.services.standings import StandingsAggregator
from pickem.utils.timezone_utils import ensure_utc, get_utc_time

logger = logging.getLogger(__name__)


class AdvanceResult:
    def __init__(self, advanced, previous=None, current=None, reason=None, scoring=None):
        self.advanced = advanced
        self.previous = previous
        self.current = current
        self.reason = reason
        self.scoring = scoring

    def to_dict(self):
        return {
            "advanced": self.advanced,
            "previous": self.previous.number if self.previous else None,
            "current": self.current.number if self.current else None,
            "reason": self.reason,
            "scoring": self.scoring.to_dict() if self.scoring else None,
        }


class GameweekService:
    def __init__(self, scoring=None, standings=None):
        self.scoring = scoring or ScoringEngine()
        self.standings = standings or StandingsAggregator()

    def current_gameweek(self):
        return Gameweek.get_current()

    def set_current(self, gameweek_id):
        """Move the current flag onto gameweek_id"""
        target = db.session.get(Gameweek, gameweek_id)
        if target is None:
            raise ValueError(f"Gameweek {gameweek_id} does not exist")

        try:
            Gameweek.query.filter(
                Gameweek.is_current.is_(True), Gameweek.id != gameweek_id
            ).update({"is_current": False}, synchronize_session="fetch")
            # The old flag must be gone before the unique index sees the new one
            db.session.flush()
            target.is_current = True
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to set gameweek {target.number} current: {e}")
            raise

        logger.info(f"Gameweek {target.number} is now current")
        return target

    def is_complete(self, gameweek_id):
        """True when the gameweek has fixtures and every one has finished"""
        total = Fixture.query.filter_by(gameweek_id=gameweek_id).count()
        if total == 0:
            return False
        finished = Fixture.query.filter_by(
            gameweek_id=gameweek_id, status=STATUS_FINISHED
        ).count()
        return finished == total

    def advance(self, now=None):
        """
        Score the current gameweek and hand the flag to the next one.

        Nothing moves while the current gameweek still has unfinished
        fixtures. After the last gameweek the flag stays where it is.
        """
        current = self.current_gameweek()
        if current is None:
            return AdvanceResult(False, reason="no_current_gameweek")

        if not self.is_complete(current.id):
            logger.debug(f"Gameweek {current.number} not complete, staying put")
            return AdvanceResult(False, previous=current, current=current, reason="incomplete")

        summary = self.scoring.score_gameweek(current.id)

        following = (
            Gameweek.query.filter(Gameweek.number > current.number)
            .order_by(Gameweek.number)
            .first()
        )
        if following is None:
            self.standings.refresh_all_standings()
            logger.info(f"Gameweek {current.number} was the last one, season complete")
            return AdvanceResult(
                False,
                previous=current,
                current=current,
                reason="season_complete",
                scoring=summary,
            )

        reason = None
        if following.deadline_utc <= ensure_utc(now or get_utc_time()):
            # Still advanced, but nobody can pick for it any more
            reason = "deadline_passed"
            logger.warning(
                f"Advancing to gameweek {following.number} whose deadline has already passed"
            )

        self.set_current(following.id)
        self.standings.refresh_all_standings()

        logger.info(f"Advanced from gameweek {current.number} to {following.number}")
        return AdvanceResult(
            True, previous=current, current=following, reason=reason, scoring=summary
        )

    def recompute_deadline(self, gameweek_id):
        """Set the deadline to the earliest kickoff of the gameweek"""
        gameweek = db.session.get(Gameweek, gameweek_id)
        if gameweek is None:
            raise ValueError(f"Gameweek {gameweek_id} does not exist")

        earliest = (
            db.session.query(db.func.min(Fixture.kickoff_time))
            .filter(Fixture.gameweek_id == gameweek_id)
            .scalar()
        )
        if earliest is None:
            return gameweek

        gameweek.deadline = ensure_utc(earliest)
        db.session.commit()
        logger.info(f"Gameweek {gameweek.number} deadline set to {gameweek.deadline}")
        return gameweek

    def status(self, gameweek_id):
        """Fixture counts of a gameweek for the admin tooling"""
        fixtures = Fixture.query.filter_by(gameweek_id=gameweek_id).all()
        by_status = {}
        for fixture in fixtures:
            by_status[fixture.status] = by_status.get(fixture.status, 0) + 1
        return {
            "fixtures": len(fixtures),
            "by_status": by_status,
            "complete": bool(fixtures) and by_status.get(STATUS_FINISHED, 0) == len(fixtures),
        }
