from datetime import datetime, timezone

from flask import jsonify
from flask_login import current_user, login_required

from pickem import limiter
from pickem.models import Gameweek
from pickem.models.pick import MAX_TEAM_USES
from pickem.routes.main import bp
from pickem.utils.scoring import DRAW_POINTS, LOSS_POINTS, WIN_POINTS


@bp.route("/")
def index():
    """Service summary"""
    current = Gameweek.get_current()
    return jsonify(
        {
            "name": "Gameweek Pick'em",
            "current_gameweek": current.to_dict() if current else None,
            "rules": {
                "one_pick_per_gameweek": True,
                "max_team_uses": MAX_TEAM_USES,
                "points": {"win": WIN_POINTS, "draw": DRAW_POINTS, "loss": LOSS_POINTS},
            },
        }
    )


@bp.route("/health")
@limiter.exempt
def health():
    """Health check endpoint - exempt from rate limiting for monitoring systems"""
    return jsonify(
        {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
    )


@bp.route("/admin/scheduler")
@login_required
def admin_scheduler():
    """Scheduler status for admins"""
    if not current_user.is_admin:
        return jsonify({"error": "Access denied"}), 403

    from pickem.services.scheduler_service import scheduler_service

    return jsonify(scheduler_service.get_status())
