"""
Pick Eligibility Engine

Decides whether a user may back a team in a fixture. The checks run in a
fixed order and the first failure wins:

1. the fixture belongs to the current gameweek
2. the team plays in the fixture
3. the gameweek deadline has not passed
4. the user has no pick for the gameweek yet
5. the user has backed the team fewer than MAX_TEAM_USES times

The engine only reads. PickLedger re-runs it inside the write transaction.
"""

import logging

from pickem import db
from pickem.errors import RejectionReason, rejection_for
from pickem.models import Fixture, Gameweek, Pick, Team
from pickem.models.pick import MAX_TEAM_USES
from pickem.utils.timezone_utils import ensure_utc, get_utc_time

logger = logging.getLogger(__name__)


class EligibilityResult:
    """Allowed, or rejected with a reason"""

    def __init__(self, allowed, reason=None, message=None, fixture=None):
        self.allowed = allowed
        self.reason = reason
        self.message = message
        self.fixture = fixture

    @classmethod
    def allow(cls, fixture):
        return cls(True, fixture=fixture)

    @classmethod
    def reject(cls, reason, message=None, fixture=None):
        error = rejection_for(reason, message)
        return cls(False, reason=error.reason, message=error.message, fixture=fixture)

    def raise_if_rejected(self):
        if not self.allowed:
            raise rejection_for(self.reason, self.message)

    def to_dict(self):
        return {
            "allowed": self.allowed,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
        }

    def __bool__(self):
        return self.allowed

    def __repr__(self):
        if self.allowed:
            return "<EligibilityResult allowed>"
        return f"<EligibilityResult rejected reason={self.reason.value}>"


class PickEligibilityEngine:
    def __init__(self, max_team_uses=MAX_TEAM_USES):
        self.max_team_uses = max_team_uses

    def propose_pick(self, user_id, fixture_id, team_id, now=None):
        """Check whether user_id may back team_id in fixture_id at time now"""
        now = ensure_utc(now) if now else get_utc_time()

        fixture = db.session.get(Fixture, fixture_id)
        current = Gameweek.get_current()
        if fixture is None or current is None or fixture.gameweek_id != current.id:
            return self._reject(user_id, RejectionReason.FIXTURE_NOT_OPEN)

        if not fixture.involves(team_id):
            return self._reject(
                user_id, RejectionReason.INVALID_TEAM_FOR_FIXTURE, fixture=fixture
            )

        # Gameweek deadline, not this fixture's own kickoff
        if not current.is_open(now):
            return self._reject(
                user_id, RejectionReason.DEADLINE_PASSED, fixture=fixture
            )

        if Pick.get_for_gameweek(user_id, current.id) is not None:
            return self._reject(user_id, RejectionReason.ALREADY_PICKED, fixture=fixture)

        uses = Pick.count_team_uses(user_id, team_id)
        if uses >= self.max_team_uses:
            team = db.session.get(Team, team_id)
            message = (
                f"You've already used {team.name} {uses} times this season."
                if team
                else None
            )
            return self._reject(
                user_id, RejectionReason.TEAM_EXHAUSTED, message, fixture=fixture
            )

        return EligibilityResult.allow(fixture)

    def team_usage(self, user_id):
        """Map of team id to the number of the user's picks backing it"""
        rows = (
            db.session.query(Pick.picked_team_id, db.func.count(Pick.id))
            .filter(Pick.user_id == user_id)
            .group_by(Pick.picked_team_id)
            .all()
        )
        return {team_id: count for team_id, count in rows}

    def available_teams(self, user_id, gameweek_id):
        """Teams playing in the gameweek that the user can still back"""
        usage = self.team_usage(user_id)
        fixtures = Fixture.query.filter_by(gameweek_id=gameweek_id).all()

        available = []
        seen = set()
        for fixture in fixtures:
            for team in (fixture.home_team, fixture.away_team):
                if team.id in seen:
                    continue
                seen.add(team.id)
                if usage.get(team.id, 0) < self.max_team_uses:
                    available.append(team)

        return sorted(available, key=lambda team: team.name)

    def _reject(self, user_id, reason, message=None, fixture=None):
        logger.debug(f"Pick rejected for user {user_id}: {reason.value}")
        return EligibilityResult.reject(reason, message, fixture=fixture)
