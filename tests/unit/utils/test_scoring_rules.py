import pytest

from pickem.models import Fixture
from pickem.models.fixture import STATUS_FINISHED, STATUS_LIVE, STATUS_SCHEDULED
from pickem.utils.scoring import (
    calc_efficiency,
    calc_efficiency_by_gameweek,
    calc_overall_efficiency,
    calculate_pick_score,
    score_from_goals,
)


def make_fixture(home_score=None, away_score=None, status=STATUS_FINISHED):
    return Fixture(
        id=1,
        home_team_id=10,
        away_team_id=20,
        home_score=home_score,
        away_score=away_score,
        status=status,
    )


@pytest.mark.parametrize(
    "picked, opponent, expected",
    [
        (2, 1, (3, True)),
        (1, 1, (1, False)),
        (0, 0, (1, False)),
        (0, 3, (0, False)),
    ],
)
def test_score_from_goals(picked, opponent, expected):
    assert score_from_goals(picked, opponent) == expected


def test_home_win_scores_home_pick_three():
    fixture = make_fixture(2, 1)

    assert calculate_pick_score(10, fixture) == (3, True)
    assert calculate_pick_score(20, fixture) == (0, False)


def test_away_win():
    fixture = make_fixture(0, 2)

    assert calculate_pick_score(20, fixture) == (3, True)
    assert calculate_pick_score(10, fixture) == (0, False)


def test_draw_is_a_point_but_not_correct():
    fixture = make_fixture(1, 1)

    assert calculate_pick_score(10, fixture) == (1, False)
    assert calculate_pick_score(20, fixture) == (1, False)


@pytest.mark.parametrize("status", [STATUS_SCHEDULED, STATUS_LIVE])
def test_unfinished_fixture_has_no_score(status):
    assert calculate_pick_score(10, make_fixture(1, 0, status=status)) is None


def test_team_outside_fixture_raises():
    with pytest.raises(ValueError):
        calculate_pick_score(30, make_fixture(1, 0))


def test_record_result_requires_both_scores_when_finished():
    fixture = make_fixture(status=STATUS_SCHEDULED)

    with pytest.raises(ValueError):
        fixture.record_result(1, None)

    fixture.record_result(1, None, status=STATUS_LIVE)
    assert fixture.status == STATUS_LIVE


class TestEfficiency:
    rows = [
        {"gameweek": 1, "points_earned": 3, "max_possible": 3},
        {"gameweek": 2, "points_earned": 1, "max_possible": 3},
        {"gameweek": 3, "points_earned": 0, "max_possible": 3},
    ]

    def test_by_gameweek(self):
        result = calc_efficiency_by_gameweek(self.rows)

        assert [row["efficiency"] for row in result] == pytest.approx([100, 33.33, 0], abs=0.01)
        assert result[0]["gameweek"] == 1
        assert "efficiency" not in self.rows[0]

    def test_overall_is_points_over_available(self):
        assert calc_overall_efficiency(self.rows) == pytest.approx(44.44, abs=0.01)

    def test_single_gameweek(self):
        assert calc_overall_efficiency(self.rows[:1]) == 100

    def test_no_gameweeks(self):
        assert calc_overall_efficiency([]) == 0

    def test_nothing_available(self):
        assert calc_efficiency(2, 0) == 0
        assert calc_efficiency_by_gameweek([{"gameweek": 1, "points_earned": 2, "max_possible": 0}])[0][
            "efficiency"
        ] == 0
