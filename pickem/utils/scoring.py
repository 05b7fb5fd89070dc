"""
Scoring rules for Gameweek Pick'em

This module handles scoring calculations for individual picks.
For writing scores and building leaderboards, see
pickem/services/scoring.py and pickem/services/standings.py
"""

WIN_POINTS = 3
DRAW_POINTS = 1
LOSS_POINTS = 0


def score_from_goals(picked_goals, opponent_goals):
    """
    Points for a pick given the final score from the picked team's side.

    Returns:
        (3, True) for a win
        (1, False) for a draw
        (0, False) for a loss
    """
    if picked_goals > opponent_goals:
        return WIN_POINTS, True
    if picked_goals == opponent_goals:
        return DRAW_POINTS, False
    return LOSS_POINTS, False


def calculate_pick_score(picked_team_id, fixture):
    """
    Calculate score for a single pick on a finished fixture.

    Args:
        picked_team_id: ID of the team the user backed
        fixture: Fixture with status and scores loaded

    Returns:
        (points, is_correct), or None when the fixture is not finished
    """
    if not fixture.is_finished:
        return None

    if not fixture.involves(picked_team_id):
        raise ValueError(
            f"Team {picked_team_id} is not playing in fixture {fixture.id}"
        )

    opponent_id = fixture.get_opponent_id(picked_team_id)
    return score_from_goals(
        fixture.get_team_score(picked_team_id), fixture.get_team_score(opponent_id)
    )


def calc_efficiency(points_earned, max_possible):
    """Points earned as a percentage of the points available; 0 when none were"""
    if max_possible <= 0:
        return 0
    return points_earned / max_possible * 100


def calc_efficiency_by_gameweek(rows):
    """
    Add an efficiency figure to each gameweek row.

    Args:
        rows: dicts with gameweek, points_earned and max_possible

    Returns:
        New dicts with an efficiency key (a percentage)
    """
    return [
        dict(row, efficiency=calc_efficiency(row["points_earned"], row["max_possible"]))
        for row in rows
    ]


def calc_overall_efficiency(rows):
    """Season efficiency: total points over total points available"""
    if not rows:
        return 0
    return calc_efficiency(
        sum(row["points_earned"] for row in rows),
        sum(row["max_possible"] for row in rows),
    )
