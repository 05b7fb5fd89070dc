"""
Error taxonomy for pick submission, undo and league bookkeeping.

Rejections are expected outcomes of user actions and carry a stable reason
code plus a message that can be shown as-is. InternalError covers storage
failures that did not map to a known rejection.
"""

from enum import Enum


class RejectionReason(str, Enum):
    FIXTURE_NOT_OPEN = "fixture_not_open"
    INVALID_TEAM_FOR_FIXTURE = "invalid_team_for_fixture"
    DEADLINE_PASSED = "deadline_passed"
    ALREADY_PICKED = "already_picked"
    TEAM_EXHAUSTED = "team_exhausted"
    UNDO_WINDOW_CLOSED = "undo_window_closed"
    PICK_NOT_FOUND = "pick_not_found"


class PickemError(Exception):
    """Base exception for the pick'em rules engine"""

    pass


class PickRejected(PickemError):
    """A pick action was refused by the rules"""

    reason = None
    default_message = "This pick is not allowed."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {
            "success": False,
            "error": self.reason.value if self.reason else "rejected",
            "message": self.message,
        }


class FixtureNotOpen(PickRejected):
    reason = RejectionReason.FIXTURE_NOT_OPEN
    default_message = "That match is not part of the gameweek open for picks."


class InvalidTeamForFixture(PickRejected):
    reason = RejectionReason.INVALID_TEAM_FOR_FIXTURE
    default_message = "That team is not playing in this match."


class DeadlinePassed(PickRejected):
    reason = RejectionReason.DEADLINE_PASSED
    default_message = "The deadline for this gameweek has passed."


class AlreadyPicked(PickRejected):
    reason = RejectionReason.ALREADY_PICKED
    default_message = "You've already made a pick for this gameweek."


class TeamExhausted(PickRejected):
    reason = RejectionReason.TEAM_EXHAUSTED
    default_message = "You've already used that team the maximum number of times this season."


class UndoWindowClosed(PickRejected):
    reason = RejectionReason.UNDO_WINDOW_CLOSED
    default_message = "You can only undo your pick before the gameweek deadline."


class PickNotFound(PickRejected):
    reason = RejectionReason.PICK_NOT_FOUND
    default_message = "You haven't made a pick for this gameweek yet."


REJECTIONS = {
    cls.reason: cls
    for cls in (
        FixtureNotOpen,
        InvalidTeamForFixture,
        DeadlinePassed,
        AlreadyPicked,
        TeamExhausted,
        UndoWindowClosed,
        PickNotFound,
    )
}


def rejection_for(reason, message=None):
    """Build the exception matching a rejection reason"""
    return REJECTIONS[RejectionReason(reason)](message)


class LeagueError(PickemError):
    """League bookkeeping refused an action"""

    def __init__(self, message, code="league_error", status_code=409):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self):
        return {"success": False, "error": self.code, "message": self.message}


class InternalError(PickemError):
    """Unexpected storage failure; the transaction has been rolled back"""

    pass
