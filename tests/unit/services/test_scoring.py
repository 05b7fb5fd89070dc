"""
Unit tests for ScoringEngine
"""

import pytest

from pickem import db
from pickem.models import GameweekScore
from pickem.services.scoring import ScoringEngine, picks_awaiting_score


@pytest.fixture
def engine():
    return ScoringEngine()


def score_rows():
    return sorted(
        (s.user_id, s.gameweek_id, s.pick_id, s.points, s.is_correct)
        for s in GameweekScore.query.all()
    )


class TestScoreGameweek:
    def test_win_draw_loss(self, engine, catalog, users, add_pick, finish):
        alice, bob, carol = users["alice"], users["bob"], users["carol"]
        ars_che = catalog["fixtures"][(1, "ARS", "CHE")]
        liv_mci = catalog["fixtures"][(1, "LIV", "MCI")]
        add_pick(alice, ars_che, catalog["teams"]["ARS"])
        add_pick(bob, ars_che, catalog["teams"]["CHE"])
        add_pick(carol, liv_mci, catalog["teams"]["LIV"])
        finish(ars_che, 2, 1)
        finish(liv_mci, 1, 1)

        summary = engine.score_gameweek(catalog["gameweeks"][1].id)

        scores = {s.user_id: (s.points, s.is_correct) for s in GameweekScore.query.all()}
        assert scores == {
            alice.id: (3, True),
            bob.id: (0, False),
            carol.id: (1, False),
        }
        assert summary.picks_scored == 3
        assert summary.fixtures_scored == 2
        assert summary.points_awarded == 4

    def test_unfinished_fixtures_are_skipped(self, engine, catalog, users, add_pick, finish):
        alice, bob = users["alice"], users["bob"]
        add_pick(alice, catalog["fixtures"][(1, "ARS", "CHE")], catalog["teams"]["ARS"])
        add_pick(bob, catalog["fixtures"][(1, "LIV", "MCI")], catalog["teams"]["LIV"])
        finish(catalog["fixtures"][(1, "ARS", "CHE")], 0, 1)

        engine.score_gameweek(catalog["gameweeks"][1].id)

        assert [s.user_id for s in GameweekScore.query.all()] == [alice.id]
        assert [p.user_id for p in picks_awaiting_score(catalog["gameweeks"][1].id)] == [bob.id]

    def test_nothing_finished_is_a_noop(self, engine, catalog, users, add_pick):
        add_pick(users["alice"], catalog["fixtures"][(1, "ARS", "CHE")], catalog["teams"]["ARS"])

        summary = engine.score_gameweek(catalog["gameweeks"][1].id)

        assert summary.is_noop
        assert GameweekScore.query.count() == 0

    def test_rerun_is_idempotent(self, engine, catalog, users, add_pick, finish):
        add_pick(users["alice"], catalog["fixtures"][(1, "ARS", "CHE")], catalog["teams"]["ARS"])
        add_pick(users["bob"], catalog["fixtures"][(1, "LIV", "MCI")], catalog["teams"]["MCI"])
        finish(catalog["fixtures"][(1, "ARS", "CHE")], 2, 1)
        finish(catalog["fixtures"][(1, "LIV", "MCI")], 3, 3)
        gameweek_id = catalog["gameweeks"][1].id

        engine.score_gameweek(gameweek_id)
        first = score_rows()
        engine.score_gameweek(gameweek_id)
        engine.score_gameweek(gameweek_id)

        assert score_rows() == first
        assert GameweekScore.query.count() == 2

    def test_score_correction_overwrites(self, engine, catalog, users, add_pick, finish):
        alice = users["alice"]
        fixture = catalog["fixtures"][(1, "ARS", "CHE")]
        add_pick(alice, fixture, catalog["teams"]["ARS"])
        finish(fixture, 2, 1)
        engine.score_gameweek(catalog["gameweeks"][1].id)

        # The provider corrects the result to a draw
        finish(fixture, 2, 2)
        engine.score_gameweek(catalog["gameweeks"][1].id)

        score = GameweekScore.query.one()
        assert (score.points, score.is_correct) == (1, False)

    def test_reverted_result_removes_score(self, engine, catalog, users, add_pick, finish):
        fixture = catalog["fixtures"][(1, "ARS", "CHE")]
        add_pick(users["alice"], fixture, catalog["teams"]["ARS"])
        finish(fixture, 2, 1)
        engine.score_gameweek(catalog["gameweeks"][1].id)

        fixture.record_result(2, 1, status="live")
        db.session.commit()
        summary = engine.score_gameweek(catalog["gameweeks"][1].id)

        assert summary.scores_removed == 1
        assert GameweekScore.query.count() == 0

    def test_scores_only_exist_for_finished_fixtures(self, engine, catalog, users, add_pick, finish):
        add_pick(users["alice"], catalog["fixtures"][(1, "ARS", "CHE")], catalog["teams"]["ARS"])
        add_pick(users["bob"], catalog["fixtures"][(1, "LIV", "MCI")], catalog["teams"]["LIV"])
        finish(catalog["fixtures"][(1, "LIV", "MCI")], 0, 2)

        engine.score_all_gameweeks()

        for score in GameweekScore.query.all():
            assert score.pick.fixture.is_finished


class TestScoreAllGameweeks:
    def test_scores_every_gameweek_with_results(self, engine, catalog, users, add_pick, finish):
        alice = users["alice"]
        add_pick(alice, catalog["fixtures"][(1, "ARS", "CHE")], catalog["teams"]["ARS"])
        add_pick(alice, catalog["fixtures"][(2, "MCI", "LIV")], catalog["teams"]["MCI"])
        finish(catalog["fixtures"][(1, "ARS", "CHE")], 1, 0)
        finish(catalog["fixtures"][(2, "MCI", "LIV")], 1, 0)

        summaries = engine.score_all_gameweeks()

        assert [s.gameweek_id for s in summaries] == [
            catalog["gameweeks"][1].id,
            catalog["gameweeks"][2].id,
        ]
        assert sum(s.points for s in GameweekScore.query.all()) == 6
