"""
Pytest fixtures and configuration for all tests.

Every test gets a fresh application on an in-memory SQLite database with a
small catalog: four teams, three gameweeks of two fixtures each, and three
users. Gameweek 1 is current and its deadline sits two hours after `now`.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from pickem import create_app, db  # noqa: E402
from pickem.models import Fixture, Gameweek, Pick, Team, User  # noqa: E402


@pytest.fixture
def app():
    """Application built with TestingConfig, inside an app context"""
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()

    yield app

    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def now():
    """A fixed instant shortly before the gameweek 1 deadline"""
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def make_user(app):
    def _make_user(username, **kwargs):
        user = User(username=username, **kwargs)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def users(make_user):
    return {name: make_user(name) for name in ("alice", "bob", "carol")}


@pytest.fixture
def catalog(app, now):
    """
    Teams, gameweeks and fixtures:

        GW1 (current): ARS v CHE, LIV v MCI
        GW2:           CHE v ARS, MCI v LIV
        GW3:           ARS v LIV, CHE v MCI
    """
    teams = {}
    for short_name, name in (
        ("ARS", "Arsenal"),
        ("CHE", "Chelsea"),
        ("LIV", "Liverpool"),
        ("MCI", "Manchester City"),
    ):
        teams[short_name] = Team(name=name, short_name=short_name)
        db.session.add(teams[short_name])

    gameweeks = {}
    for number in (1, 2, 3):
        deadline = now + timedelta(hours=2) + timedelta(days=7 * (number - 1))
        gameweeks[number] = Gameweek(
            number=number, deadline=deadline, is_current=(number == 1)
        )
        db.session.add(gameweeks[number])
    db.session.flush()

    fixtures = {}
    schedule = {
        1: [("ARS", "CHE"), ("LIV", "MCI")],
        2: [("CHE", "ARS"), ("MCI", "LIV")],
        3: [("ARS", "LIV"), ("CHE", "MCI")],
    }
    for number, pairs in schedule.items():
        for home, away in pairs:
            fixture = Fixture(
                gameweek_id=gameweeks[number].id,
                home_team_id=teams[home].id,
                away_team_id=teams[away].id,
                kickoff_time=gameweeks[number].deadline + timedelta(hours=1),
            )
            db.session.add(fixture)
            fixtures[(number, home, away)] = fixture

    db.session.commit()

    return {"teams": teams, "gameweeks": gameweeks, "fixtures": fixtures}


@pytest.fixture
def add_pick(app):
    """Insert a pick directly, bypassing the rules"""

    def _add_pick(user, fixture, team, slot=None):
        if slot is None:
            slot = Pick.count_team_uses(user.id, team.id) + 1
        pick = Pick(
            user_id=user.id,
            gameweek_id=fixture.gameweek_id,
            fixture_id=fixture.id,
            picked_team_id=team.id,
            team_use_slot=slot,
        )
        db.session.add(pick)
        db.session.commit()
        return pick

    return _add_pick


@pytest.fixture
def finish(app):
    """Record a final score on a fixture"""

    def _finish(fixture, home_score, away_score):
        fixture.record_result(home_score, away_score)
        db.session.commit()
        return fixture

    return _finish


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {user.api_token}"}

    return _auth_headers
