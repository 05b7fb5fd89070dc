"""
Unit tests for PickLedger
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from pickem import db
from pickem.errors import (
    AlreadyPicked,
    DeadlinePassed,
    InvalidTeamForFixture,
    PickNotFound,
    TeamExhausted,
    UndoWindowClosed,
)
from pickem.models import Fixture, GameweekScore, Pick
from pickem.services.eligibility import EligibilityResult
from pickem.services.ledger import (
    STATE_LOCKED,
    STATE_NO_PICK,
    STATE_PICKED,
    PickLedger,
)


class AlwaysAllow:
    """Eligibility stand-in that approves everything, as if a parallel
    request had passed its checks before this one wrote"""

    def propose_pick(self, user_id, fixture_id, team_id, now=None):
        return EligibilityResult.allow(db.session.get(Fixture, fixture_id))


@pytest.fixture
def ledger():
    return PickLedger()


class TestSubmit:
    def test_submit_creates_pick(self, ledger, catalog, users, now):
        alice = users["alice"]
        fixture = catalog["fixtures"][(1, "ARS", "CHE")]

        pick = ledger.submit(alice.id, fixture.id, catalog["teams"]["ARS"].id, now=now)

        assert pick.id is not None
        assert pick.gameweek_id == catalog["gameweeks"][1].id
        assert pick.team_use_slot == 1
        assert Pick.query.filter_by(user_id=alice.id).count() == 1

    def test_second_use_takes_slot_two(self, ledger, catalog, users, now, add_pick):
        alice = users["alice"]
        ars = catalog["teams"]["ARS"]
        add_pick(alice, catalog["fixtures"][(2, "CHE", "ARS")], ars)

        pick = ledger.submit(alice.id, catalog["fixtures"][(1, "ARS", "CHE")].id, ars.id, now=now)

        assert pick.team_use_slot == 2

    def test_rejections_leave_no_rows(self, ledger, catalog, users, now):
        alice = users["alice"]
        fixture = catalog["fixtures"][(1, "ARS", "CHE")]

        with pytest.raises(InvalidTeamForFixture):
            ledger.submit(alice.id, fixture.id, catalog["teams"]["LIV"].id, now=now)

        with pytest.raises(DeadlinePassed):
            ledger.submit(
                alice.id,
                fixture.id,
                catalog["teams"]["ARS"].id,
                now=catalog["gameweeks"][1].deadline_utc,
            )

        assert Pick.query.count() == 0

    def test_double_submit_is_already_picked(self, ledger, catalog, users, now):
        alice = users["alice"]
        ledger.submit(alice.id, catalog["fixtures"][(1, "ARS", "CHE")].id, catalog["teams"]["ARS"].id, now=now)

        with pytest.raises(AlreadyPicked):
            ledger.submit(
                alice.id, catalog["fixtures"][(1, "LIV", "MCI")].id, catalog["teams"]["LIV"].id, now=now
            )

        assert Pick.query.filter_by(user_id=alice.id).count() == 1

    def test_third_use_is_team_exhausted(self, ledger, catalog, users, now, add_pick):
        alice = users["alice"]
        ars = catalog["teams"]["ARS"]
        add_pick(alice, catalog["fixtures"][(2, "CHE", "ARS")], ars)
        add_pick(alice, catalog["fixtures"][(3, "ARS", "LIV")], ars)

        with pytest.raises(TeamExhausted):
            ledger.submit(alice.id, catalog["fixtures"][(1, "ARS", "CHE")].id, ars.id, now=now)

        assert Pick.count_team_uses(alice.id, ars.id) == 2


class TestConcurrentWrites:
    """The database constraints decide when the application checks are raced."""

    def test_gameweek_constraint_maps_to_already_picked(self, catalog, users, now, add_pick):
        alice = users["alice"]
        add_pick(alice, catalog["fixtures"][(1, "LIV", "MCI")], catalog["teams"]["LIV"])
        ledger = PickLedger(eligibility=AlwaysAllow())

        with pytest.raises(AlreadyPicked):
            ledger.submit(alice.id, catalog["fixtures"][(1, "ARS", "CHE")].id, catalog["teams"]["ARS"].id, now=now)

        assert Pick.query.filter_by(user_id=alice.id).count() == 1

    def test_slot_constraint_maps_to_team_exhausted(self, catalog, users, now, add_pick, monkeypatch):
        alice = users["alice"]
        ars = catalog["teams"]["ARS"]
        add_pick(alice, catalog["fixtures"][(2, "CHE", "ARS")], ars, slot=1)
        add_pick(alice, catalog["fixtures"][(3, "ARS", "LIV")], ars, slot=2)
        ledger = PickLedger(eligibility=AlwaysAllow())
        # Both slots looked free to this request when it read them
        monkeypatch.setattr(ledger, "_free_slot", lambda user_id, team_id: 1)

        with pytest.raises(TeamExhausted):
            ledger.submit(alice.id, catalog["fixtures"][(1, "ARS", "CHE")].id, ars.id, now=now)

        assert Pick.count_team_uses(alice.id, ars.id) == 2

    def test_lost_slot_race_retries_with_next_slot(self, catalog, users, now, add_pick, monkeypatch):
        alice = users["alice"]
        ars = catalog["teams"]["ARS"]
        add_pick(alice, catalog["fixtures"][(2, "CHE", "ARS")], ars, slot=1)
        ledger = PickLedger(eligibility=AlwaysAllow())
        slots = iter([1, 2])
        monkeypatch.setattr(ledger, "_free_slot", lambda user_id, team_id: next(slots))

        pick = ledger.submit(alice.id, catalog["fixtures"][(1, "ARS", "CHE")].id, ars.id, now=now)

        assert pick.team_use_slot == 2
        assert Pick.count_team_uses(alice.id, ars.id) == 2

    def test_third_slot_rejected_by_check_constraint(self, catalog, users, add_pick):
        alice = users["alice"]
        ars = catalog["teams"]["ARS"]

        with pytest.raises(IntegrityError):
            add_pick(alice, catalog["fixtures"][(1, "ARS", "CHE")], ars, slot=3)
        db.session.rollback()

    def test_duplicate_gameweek_rejected_by_unique_constraint(self, catalog, users, add_pick):
        alice = users["alice"]
        add_pick(alice, catalog["fixtures"][(1, "ARS", "CHE")], catalog["teams"]["ARS"])

        with pytest.raises(IntegrityError):
            add_pick(alice, catalog["fixtures"][(1, "LIV", "MCI")], catalog["teams"]["LIV"])
        db.session.rollback()

        assert Pick.query.filter_by(user_id=alice.id).count() == 1


class TestUndo:
    def test_undo_frees_gameweek_and_team(self, ledger, catalog, users, now):
        alice = users["alice"]
        ars = catalog["teams"]["ARS"]
        gameweek = catalog["gameweeks"][1]
        ledger.submit(alice.id, catalog["fixtures"][(1, "ARS", "CHE")].id, ars.id, now=now)

        removed = ledger.undo(alice.id, gameweek.id, now=now)

        assert removed.picked_team_id == ars.id
        assert Pick.get_for_gameweek(alice.id, gameweek.id) is None
        assert Pick.count_team_uses(alice.id, ars.id) == 0

        # The gameweek is open again, for any team
        again = ledger.submit(alice.id, catalog["fixtures"][(1, "LIV", "MCI")].id, catalog["teams"]["MCI"].id, now=now)
        assert again.picked_team_id == catalog["teams"]["MCI"].id

    def test_undo_at_deadline_is_rejected(self, ledger, catalog, users, now):
        alice = users["alice"]
        gameweek = catalog["gameweeks"][1]
        ledger.submit(alice.id, catalog["fixtures"][(1, "ARS", "CHE")].id, catalog["teams"]["ARS"].id, now=now)

        with pytest.raises(UndoWindowClosed):
            ledger.undo(alice.id, gameweek.id, now=gameweek.deadline_utc)

        assert Pick.get_for_gameweek(alice.id, gameweek.id) is not None

    def test_undo_without_pick(self, ledger, catalog, users, now):
        with pytest.raises(PickNotFound):
            ledger.undo(users["alice"].id, catalog["gameweeks"][1].id, now=now)

    def test_undo_unknown_gameweek(self, ledger, catalog, users, now):
        with pytest.raises(PickNotFound):
            ledger.undo(users["alice"].id, 9999, now=now)

    def test_undo_removes_score(self, ledger, catalog, users, now, add_pick):
        alice = users["alice"]
        pick = add_pick(alice, catalog["fixtures"][(1, "ARS", "CHE")], catalog["teams"]["ARS"])
        db.session.add(
            GameweekScore(user_id=alice.id, gameweek_id=pick.gameweek_id, pick_id=pick.id, points=3, is_correct=True)
        )
        db.session.commit()

        ledger.undo(alice.id, catalog["gameweeks"][1].id, now=now)

        assert GameweekScore.query.count() == 0


class TestPickState:
    def test_state_machine(self, ledger, catalog, users, now):
        alice = users["alice"]
        gameweek = catalog["gameweeks"][1]
        after_deadline = gameweek.deadline_utc + timedelta(seconds=1)

        assert ledger.pick_state(alice.id, gameweek.id, now=now) == STATE_NO_PICK

        ledger.submit(alice.id, catalog["fixtures"][(1, "ARS", "CHE")].id, catalog["teams"]["ARS"].id, now=now)
        assert ledger.pick_state(alice.id, gameweek.id, now=now) == STATE_PICKED
        assert ledger.can_undo(alice.id, gameweek.id, now=now)

        assert ledger.pick_state(alice.id, gameweek.id, now=after_deadline) == STATE_LOCKED
        assert not ledger.can_undo(alice.id, gameweek.id, now=after_deadline)
