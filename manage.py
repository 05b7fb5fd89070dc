#!/usr/bin/env python3
"""
Gameweek Pick'em Management CLI

Command-line administration for the catalog, the current gameweek, scoring
and standings. Every command runs inside the Flask application context.
"""

import logging

import click
from flask.cli import with_appcontext
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pickem import create_app, db
from pickem.models import Fixture, Gameweek, League, Pick, Team, User
from pickem.services.gameweeks import GameweekService
from pickem.services.scoring import ScoringEngine
from pickem.services.standings import StandingsAggregator
from pickem.utils.cache_utils import invalidate_model_cache
from pickem.utils.timezone_utils import convert_to_utc, format_kickoff

logger = logging.getLogger(__name__)

DATETIME_FORMATS = ["%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M"]


def _fail(message):
    click.echo(f"❌ {message}")
    raise click.exceptions.Exit(1)


def _gameweek_or_fail(number):
    gameweek = Gameweek.get_by_number(number)
    if gameweek is None:
        _fail(f"Gameweek {number} not found!")
    return gameweek


@click.group()
def cli():
    """Gameweek Pick'em Management CLI"""
    pass


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command("init")
@with_appcontext
def init_db():
    """Initialize database tables"""
    db.create_all()
    click.echo("✅ Database tables created successfully!")


@db_cmd.command()
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@with_appcontext
def reset(yes):
    """⚠️  DANGER: Drop and recreate all tables"""
    if not yes and not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    db.drop_all()
    db.create_all()
    click.echo("✅ Database reset successfully!")


# Catalog Commands
@cli.group()
def catalog():
    """Teams, gameweeks and fixtures (normally written by the fixture sync)"""
    pass


@catalog.command("add-team")
@click.argument("name")
@click.argument("short_name")
@click.option("--color", help="Team color as a hex code")
@with_appcontext
def add_team(name, short_name, color):
    """Add a team"""
    try:
        team = Team(name=name, short_name=short_name.upper(), team_color=color)
        db.session.add(team)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.error(f"Team creation failed - integrity error: {e}")
        _fail(f"Team '{short_name}' already exists!")

    click.echo(f"✅ Added team {team.name} ({team.short_name}) with id {team.id}")


@catalog.command("add-gameweek")
@click.argument("number", type=int)
@click.option(
    "--deadline",
    type=click.DateTime(formats=DATETIME_FORMATS),
    required=True,
    help="Pick deadline in the app timezone (YYYY-MM-DD HH:MM)",
)
@click.option("--current", is_flag=True, help="Make this the current gameweek")
@with_appcontext
def add_gameweek(number, deadline, current):
    """Add a gameweek"""
    try:
        gameweek = Gameweek(number=number, deadline=convert_to_utc(deadline))
        db.session.add(gameweek)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.error(f"Gameweek creation failed - integrity error: {e}")
        _fail(f"Gameweek {number} already exists or is out of range!")

    if current:
        GameweekService().set_current(gameweek.id)

    click.echo(f"✅ Added gameweek {number}, deadline {format_kickoff(gameweek.deadline)}")


@catalog.command("add-fixture")
@click.argument("gameweek_number", type=int)
@click.argument("home")
@click.argument("away")
@click.option(
    "--kickoff",
    type=click.DateTime(formats=DATETIME_FORMATS),
    required=True,
    help="Kickoff in the app timezone (YYYY-MM-DD HH:MM)",
)
@with_appcontext
def add_fixture(gameweek_number, home, away, kickoff):
    """Add a fixture between two teams, given by short name"""
    gameweek = _gameweek_or_fail(gameweek_number)
    home_team = Team.get_by_short_name(home.upper())
    away_team = Team.get_by_short_name(away.upper())
    if home_team is None or away_team is None:
        _fail(f"Unknown team in {home} v {away}")

    try:
        fixture = Fixture(
            gameweek_id=gameweek.id,
            home_team_id=home_team.id,
            away_team_id=away_team.id,
            kickoff_time=convert_to_utc(kickoff),
        )
        db.session.add(fixture)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.error(f"Fixture creation failed - integrity error: {e}")
        _fail("A team cannot play itself!")

    click.echo(
        f"✅ Added fixture {fixture.id}: {home_team.short_name} v {away_team.short_name} "
        f"(gameweek {gameweek.number}, {format_kickoff(fixture.kickoff_time)})"
    )


@catalog.command("result")
@click.argument("fixture_id", type=int)
@click.argument("home_score", type=int)
@click.argument("away_score", type=int)
@click.option("--live", is_flag=True, help="Record an in-play score instead of a final one")
@with_appcontext
def record_result(fixture_id, home_score, away_score, live):
    """Record a fixture score; final unless --live"""
    fixture = db.session.get(Fixture, fixture_id)
    if fixture is None:
        _fail(f"Fixture {fixture_id} not found!")

    status = "live" if live else "finished"
    try:
        fixture.record_result(home_score, away_score, status=status)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        _fail(str(e))

    click.echo(
        f"✅ Fixture {fixture.id}: {fixture.home_team.short_name} {home_score}-{away_score} "
        f"{fixture.away_team.short_name} ({status})"
    )


# Gameweek Commands
@cli.group()
def gameweek():
    """Current gameweek management"""
    pass


@gameweek.command()
@with_appcontext
def current():
    """Show the current gameweek"""
    gw = Gameweek.get_current()
    if gw is None:
        click.echo("⚠️  No current gameweek")
        return

    state = "open" if gw.is_open() else "closed"
    click.echo(f"Gameweek {gw.number}: deadline {format_kickoff(gw.deadline)} ({state})")


@gameweek.command("set-current")
@click.argument("number", type=int)
@with_appcontext
def set_current(number):
    """Make a gameweek the current one"""
    gw = _gameweek_or_fail(number)
    GameweekService().set_current(gw.id)
    click.echo(f"✅ Gameweek {number} is now current")


@gameweek.command()
@with_appcontext
def advance():
    """Score the current gameweek and move on if every fixture has finished"""
    result = GameweekService().advance()

    if result.advanced:
        click.echo(
            f"✅ Advanced from gameweek {result.previous.number} to {result.current.number}"
        )
        if result.reason == "deadline_passed":
            click.echo(f"⚠️  Gameweek {result.current.number} deadline has already passed")
    elif result.reason == "season_complete":
        click.echo(f"🏁 Gameweek {result.current.number} was the last one, season complete")
    elif result.reason == "incomplete":
        click.echo(f"⏳ Gameweek {result.current.number} still has unfinished fixtures")
    else:
        click.echo("⚠️  No current gameweek")


@gameweek.command("recompute-deadline")
@click.argument("number", type=int)
@with_appcontext
def recompute_deadline(number):
    """Set a gameweek deadline to its earliest kickoff"""
    gw = GameweekService().recompute_deadline(_gameweek_or_fail(number).id)
    click.echo(f"✅ Gameweek {gw.number} deadline is {format_kickoff(gw.deadline)}")


@gameweek.command("status")
@click.argument("number", type=int, required=False)
@with_appcontext
def gameweek_status(number):
    """Fixture and pick counts for a gameweek (default: current)"""
    gw = _gameweek_or_fail(number) if number else Gameweek.get_current()
    if gw is None:
        _fail("No current gameweek")

    info = GameweekService().status(gw.id)
    picks = Pick.query.filter_by(gameweek_id=gw.id).count()

    click.echo(f"Gameweek {gw.number}")
    click.echo(f"  Deadline: {format_kickoff(gw.deadline)}")
    click.echo(f"  Fixtures: {info['fixtures']} {info['by_status']}")
    click.echo(f"  Picks: {picks}")
    click.echo(f"  Complete: {'yes' if info['complete'] else 'no'}")


# Scoring Commands
@cli.group()
def scores():
    """Scoring commands"""
    pass


@scores.command("run")
@click.option("--gameweek", "gameweek_number", type=int, help="Only this gameweek")
@with_appcontext
def run_scores(gameweek_number):
    """Score picks on finished fixtures"""
    engine = ScoringEngine()

    if gameweek_number:
        summaries = [engine.score_gameweek(_gameweek_or_fail(gameweek_number).id)]
    else:
        summaries = engine.score_all_gameweeks()

    for summary in summaries:
        click.echo(
            f"  Gameweek id {summary.gameweek_id}: {summary.picks_scored} picks, "
            f"{summary.points_awarded} points, {summary.scores_removed} removed"
        )
    click.echo(f"✅ Scored {len(summaries)} gameweeks")


# Standings Commands
@cli.group()
def standings():
    """Standings commands"""
    pass


@standings.command("refresh")
@with_appcontext
def refresh_standings():
    """Rebuild global and league standings"""
    refreshed = StandingsAggregator().refresh_all_standings()
    click.echo(f"✅ Refreshed {len(refreshed)} standings scopes")


@standings.command("check")
@with_appcontext
def check_standings():
    """Compare stored standings with a fresh computation"""
    issues = StandingsAggregator().check_ranking_integrity()
    if not issues:
        click.echo("✅ Standings are consistent")
        return

    for issue in issues:
        scope = "global" if issue["league_id"] is None else f"league {issue['league_id']}"
        click.echo(f"  {issue['issue_type']}: user {issue['user_id']} ({scope})")
    _fail(f"{len(issues)} standings issues found; run 'standings refresh'")


# User Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command("create")
@click.argument("username")
@click.option("--display-name", help="Name shown on leaderboards")
@click.option("--admin", is_flag=True, help="Grant admin rights")
@with_appcontext
def create_user(username, display_name, admin):
    """Create a user and print its API token"""
    try:
        new_user = User(username=username, display_name=display_name, is_admin=admin)
        db.session.add(new_user)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.error(f"User creation failed - integrity error: {e}")
        _fail(f"User '{username}' already exists!")

    click.echo(f"✅ Created user '{username}'")
    click.echo(f"   API token: {new_user.api_token}")


@user.command("deactivate")
@click.argument("username")
@with_appcontext
def deactivate_user(username):
    """Deactivate a user and drop them from the global standings"""
    target = User.query.filter_by(username=username).first()
    if target is None:
        _fail(f"User '{username}' not found!")

    try:
        target.is_active = False
        db.session.flush()
        StandingsAggregator().refresh_standings(commit=False)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _fail(f"Could not deactivate '{username}': {e}")

    invalidate_model_cache("Standing")
    click.echo(f"✅ Deactivated user '{username}'")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("⚽ Gameweek Pick'em Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        _fail(f"Database: Error - {str(e)}")

    gw = Gameweek.get_current()
    if gw:
        click.echo(f"✅ Current Gameweek: {gw.number} (deadline {format_kickoff(gw.deadline)})")
    else:
        click.echo("⚠️  Current Gameweek: None")

    click.echo(f"👥 Active Users: {User.query.filter_by(is_active=True).count()}")
    click.echo(f"🏆 Leagues: {League.query.count()}")
    click.echo(f"📝 Picks: {Pick.query.count()}")

    if gw:
        fixture_count = Fixture.query.filter_by(gameweek_id=gw.id).count()
        finished_count = Fixture.query.filter_by(gameweek_id=gw.id, status="finished").count()
        click.echo(f"⚽ Fixtures: {finished_count}/{fixture_count} finished")


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        cli()
