from functools import wraps

from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from pickem import db, limiter
from pickem.models import Gameweek, GameweekScore, League, Pick, Team
from pickem.models.pick import MAX_TEAM_USES
from pickem.routes.api import bp
from pickem.services.eligibility import PickEligibilityEngine
from pickem.services.leagues import LeagueService
from pickem.services.ledger import PickLedger
from pickem.services.standings import get_standings_payload
from pickem.utils.scoring import WIN_POINTS, calc_efficiency_by_gameweek, calc_overall_efficiency

eligibility = PickEligibilityEngine()
ledger = PickLedger(eligibility)
leagues = LeagueService()


def add_security_headers(f):
    """Keep per-user API responses out of shared caches"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = current_app.make_response(f(*args, **kwargs))
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        return response

    return decorated_function


def _pick_limit():
    return current_app.config.get("PICK_RATE_LIMIT", "30 per minute")


def _bad_request(message):
    return jsonify({"success": False, "error": "bad_request", "message": message}), 400


def _pick_payload():
    """fixture_id and team_id from the JSON body, or None when malformed"""
    data = request.get_json(silent=True) or {}
    try:
        return int(data["fixture_id"]), int(data["team_id"])
    except (KeyError, TypeError, ValueError):
        return None


@bp.route("/gameweeks/current")
def current_gameweek():
    """Current gameweek with its fixtures"""
    gameweek = Gameweek.get_current()
    if gameweek is None:
        return jsonify({"error": "No gameweek is open"}), 404
    return jsonify(gameweek.to_dict(include_fixtures=True))


@bp.route("/gameweeks/<int:gameweek_id>/fixtures")
def gameweek_fixtures(gameweek_id):
    gameweek = db.get_or_404(Gameweek, gameweek_id)
    return jsonify(
        {
            "gameweek": gameweek.to_dict(),
            "fixtures": [fixture.to_dict() for fixture in gameweek.get_fixtures()],
        }
    )


@bp.route("/picks/propose", methods=["POST"])
@login_required
def propose_pick():
    """Check a pick without saving it"""
    payload = _pick_payload()
    if payload is None:
        return _bad_request("fixture_id and team_id are required integers")

    fixture_id, team_id = payload
    result = eligibility.propose_pick(current_user.id, fixture_id, team_id)
    return jsonify(result.to_dict())


@bp.route("/picks", methods=["POST"])
@login_required
@limiter.limit(_pick_limit)
@add_security_headers
def submit_pick():
    payload = _pick_payload()
    if payload is None:
        return _bad_request("fixture_id and team_id are required integers")

    fixture_id, team_id = payload
    # Rejections propagate to the PickRejected error handler
    pick = ledger.submit(current_user.id, fixture_id, team_id)
    return jsonify({"success": True, "pick": pick.to_dict()}), 201


@bp.route("/picks/<int:gameweek_id>", methods=["DELETE"])
@login_required
@add_security_headers
def undo_pick(gameweek_id):
    pick = ledger.undo(current_user.id, gameweek_id)
    return jsonify(
        {
            "success": True,
            "gameweek_id": gameweek_id,
            "released_team_id": pick.picked_team_id,
        }
    )


@bp.route("/picks")
@login_required
@add_security_headers
def user_picks():
    """The user's picks for the season with their current state"""
    picks = []
    for pick in Pick.get_user_picks(current_user.id):
        data = pick.to_dict()
        data["state"] = ledger.pick_state(current_user.id, pick.gameweek_id)
        picks.append(data)
    return jsonify({"picks": picks})


@bp.route("/teams/usage")
@login_required
@add_security_headers
def team_usage():
    usage = eligibility.team_usage(current_user.id)
    teams = Team.query.order_by(Team.name).all()

    response = {
        "max_team_uses": MAX_TEAM_USES,
        "teams": [
            dict(
                team.to_dict(),
                times_used=usage.get(team.id, 0),
                remaining=max(MAX_TEAM_USES - usage.get(team.id, 0), 0),
            )
            for team in teams
        ],
        "available_this_gameweek": [],
    }

    current = Gameweek.get_current()
    if current:
        response["available_this_gameweek"] = [
            team.to_dict() for team in eligibility.available_teams(current_user.id, current.id)
        ]

    return jsonify(response)


@bp.route("/scores")
@login_required
@add_security_headers
def user_scores():
    rows = (
        db.session.query(GameweekScore, Gameweek.number)
        .join(Gameweek, Gameweek.id == GameweekScore.gameweek_id)
        .filter(GameweekScore.user_id == current_user.id)
        .order_by(Gameweek.number)
        .all()
    )
    # One pick per gameweek, so a win is the most a gameweek can give
    by_gameweek = calc_efficiency_by_gameweek(
        [
            {"gameweek": number, "points_earned": score.points, "max_possible": WIN_POINTS}
            for score, number in rows
        ]
    )
    return jsonify(
        {
            "scores": [score.to_dict() for score, _ in rows],
            "total_points": sum(score.points for score, _ in rows),
            "efficiency": {
                "by_gameweek": by_gameweek,
                "overall": calc_overall_efficiency(by_gameweek),
            },
        }
    )


@bp.route("/standings")
def global_standings():
    return jsonify({"league_id": None, "standings": get_standings_payload()})


@bp.route("/leagues/<int:league_id>/standings")
@login_required
def league_standings(league_id):
    league = db.get_or_404(League, league_id)
    if not league.is_user_member(current_user.id):
        return jsonify({"error": "Not a member of this league"}), 403

    return jsonify(
        {
            "league": league.to_dict(),
            "standings": get_standings_payload(league.id),
        }
    )


@bp.route("/leagues", methods=["POST"])
@login_required
def create_league():
    data = request.get_json(silent=True) or {}

    max_members = data.get("max_members")
    if max_members is not None:
        try:
            max_members = int(max_members)
        except (TypeError, ValueError):
            return _bad_request("max_members must be an integer")

    league = leagues.create_league(
        current_user.id,
        data.get("name"),
        description=data.get("description"),
        is_public=bool(data.get("is_public", False)),
        max_members=max_members,
    )
    return jsonify({"success": True, "league": league.to_dict(include_invite_code=True)}), 201


@bp.route("/leagues/join", methods=["POST"])
@login_required
def join_league():
    data = request.get_json(silent=True) or {}
    code = data.get("invite_code")
    if not code:
        return _bad_request("invite_code is required")

    league = leagues.join_by_code(current_user.id, code)
    return jsonify({"success": True, "league": league.to_dict()})


@bp.route("/leagues/<int:league_id>/membership", methods=["DELETE"])
@login_required
def leave_league(league_id):
    leagues.leave(current_user.id, league_id)
    return jsonify({"success": True, "league_id": league_id})


@bp.route("/leagues")
@login_required
def my_leagues():
    return jsonify(
        {
            "leagues": [
                league.to_dict(include_invite_code=league.creator_id == current_user.id)
                for league in leagues.leagues_for_user(current_user.id)
            ]
        }
    )


@bp.route("/leagues/<int:league_id>/members")
@login_required
def league_members(league_id):
    members = leagues.list_members(current_user.id, league_id)
    return jsonify({"league_id": league_id, "members": [m.to_dict() for m in members]})


@bp.route("/leagues/<int:league_id>", methods=["DELETE"])
@login_required
def delete_league(league_id):
    leagues.delete_league(current_user.id, league_id)
    return jsonify({"success": True, "league_id": league_id})
