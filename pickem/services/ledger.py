"""
Pick Ledger

Writes and removes picks. The uniqueness constraints on the picks table are
the authority for "one pick per gameweek" and "two uses per team"; the
eligibility checks run first so ordinary rejections get a specific reason,
and constraint violations from concurrent submits are mapped back onto the
same taxonomy.
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pickem import db
from pickem.errors import (
    AlreadyPicked,
    InternalError,
    PickNotFound,
    TeamExhausted,
    UndoWindowClosed,
)
from pickem.models import Gameweek, Pick
from pickem.models.pick import MAX_TEAM_USES
from pickem.services.eligibility import PickEligibilityEngine
from pickem.utils.timezone_utils import ensure_utc, get_utc_time

logger = logging.getLogger(__name__)

STATE_NO_PICK = "no_pick"
STATE_PICKED = "picked"
STATE_LOCKED = "locked"


class PickLedger:
    def __init__(self, eligibility=None):
        self.eligibility = eligibility or PickEligibilityEngine()

    def submit(self, user_id, fixture_id, team_id, now=None):
        """
        Record a pick after re-checking eligibility.

        Returns the created Pick. Raises a PickRejected subclass when the
        rules refuse it, or InternalError when storage fails; either way no
        pick row is left behind.
        """
        now = ensure_utc(now) if now else get_utc_time()

        # One retry covers losing a team-slot race to a parallel submit
        for attempt in range(2):
            result = self.eligibility.propose_pick(user_id, fixture_id, team_id, now=now)
            result.raise_if_rejected()
            fixture = result.fixture

            slot = self._free_slot(user_id, team_id)
            if slot is None:
                raise TeamExhausted()

            pick = Pick(
                user_id=user_id,
                gameweek_id=fixture.gameweek_id,
                fixture_id=fixture.id,
                picked_team_id=team_id,
                team_use_slot=slot,
                created_at=now,
            )

            try:
                db.session.add(pick)
                db.session.commit()
            except IntegrityError as e:
                db.session.rollback()
                logger.info(
                    f"Pick insert for user {user_id} hit a constraint (attempt {attempt + 1}): {e.orig}"
                )
                self._raise_for_conflict(user_id, fixture.gameweek_id, team_id)
                continue
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"Pick submission failed for user {user_id}: {e}")
                raise InternalError("Could not save pick") from e

            logger.info(
                f"User {user_id} picked team {team_id} in fixture {fixture.id} "
                f"(gameweek {fixture.gameweek_id}, use {slot})"
            )
            return pick

        raise InternalError("Could not save pick after retrying a conflicting write")

    def undo(self, user_id, gameweek_id, now=None):
        """
        Remove the user's pick for a gameweek before its deadline.

        The row is deleted outright, so the gameweek and the team use are
        both free again. Returns the removed Pick.
        """
        now = ensure_utc(now) if now else get_utc_time()

        gameweek = db.session.get(Gameweek, gameweek_id)
        if gameweek is None:
            raise PickNotFound()

        if not gameweek.is_open(now):
            raise UndoWindowClosed()

        pick = Pick.get_for_gameweek(user_id, gameweek_id)
        if pick is None:
            raise PickNotFound()

        try:
            db.session.delete(pick)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Undo failed for user {user_id}, gameweek {gameweek_id}: {e}")
            raise InternalError("Could not undo pick") from e

        logger.info(f"User {user_id} undid pick for gameweek {gameweek.number}")
        return pick

    def pick_state(self, user_id, gameweek_id, now=None):
        """no_pick, picked (undo still allowed) or locked (deadline passed)"""
        pick = Pick.get_for_gameweek(user_id, gameweek_id)
        if pick is None:
            return STATE_NO_PICK

        gameweek = db.session.get(Gameweek, gameweek_id)
        if gameweek.is_open(now):
            return STATE_PICKED
        return STATE_LOCKED

    def can_undo(self, user_id, gameweek_id, now=None):
        return self.pick_state(user_id, gameweek_id, now) == STATE_PICKED

    def _free_slot(self, user_id, team_id):
        used = Pick.used_slots(user_id, team_id)
        for slot in range(1, MAX_TEAM_USES + 1):
            if slot not in used:
                return slot
        return None

    def _raise_for_conflict(self, user_id, gameweek_id, team_id):
        """Map a constraint violation onto the rejection it stands for"""
        if Pick.get_for_gameweek(user_id, gameweek_id) is not None:
            raise AlreadyPicked()
        if Pick.count_team_uses(user_id, team_id) >= MAX_TEAM_USES:
            raise TeamExhausted()
