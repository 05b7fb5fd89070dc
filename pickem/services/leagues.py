"""
League bookkeeping: creating, joining by invite code, leaving and deleting
leagues. Capacity and invite codes are enforced here only; the pick rules
know nothing about leagues.

Every membership change rebuilds the league's standings in the same
transaction, so ranks stay contiguous for the new population.
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pickem import db
from pickem.errors import InternalError, LeagueError
from pickem.models import League, LeagueMember
from pickem.services.standings import StandingsAggregator
from pickem.utils.cache_utils import invalidate_model_cache

logger = logging.getLogger(__name__)


class LeagueService:
    def __init__(self, standings=None):
        self.standings = standings or StandingsAggregator()

    def create_league(self, creator_id, name, description=None, is_public=False, max_members=None):
        """Create a league and make its creator the first member"""
        name = (name or "").strip()
        if not name:
            raise LeagueError("League name is required", code="invalid_league", status_code=400)
        if max_members is not None and max_members < 1:
            raise LeagueError(
                "max_members must be at least 1", code="invalid_league", status_code=400
            )

        league = League(
            name=name,
            description=description,
            is_public=is_public,
            max_members=max_members,
            creator_id=creator_id,
        )

        try:
            db.session.add(league)
            db.session.flush()
            db.session.add(LeagueMember(league_id=league.id, user_id=creator_id))
            db.session.flush()
            self.standings.refresh_standings(league.id, commit=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to create league '{name}': {e}")
            raise InternalError("Could not create league") from e

        invalidate_model_cache("Standing")
        logger.info(f"User {creator_id} created league {league.id} ({league.name})")
        return league

    def join_by_code(self, user_id, code):
        league = League.get_by_invite_code(code or "")
        if league is None:
            raise LeagueError("Invalid invite code", code="invalid_invite_code", status_code=404)

        if league.is_user_member(user_id):
            raise LeagueError("You are already a member of this league", code="already_member")

        if league.is_full():
            raise LeagueError("This league is full", code="league_full")

        try:
            db.session.add(LeagueMember(league_id=league.id, user_id=user_id))
            db.session.flush()
            self.standings.refresh_standings(league.id, commit=False)
            db.session.commit()
        except IntegrityError:
            # A parallel join for the same user won
            db.session.rollback()
            raise LeagueError("You are already a member of this league", code="already_member")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to add user {user_id} to league {league.id}: {e}")
            raise InternalError("Could not join league") from e

        invalidate_model_cache("Standing")
        logger.info(f"User {user_id} joined league {league.id}")
        return league

    def leave(self, user_id, league_id):
        membership = LeagueMember.query.filter_by(league_id=league_id, user_id=user_id).first()
        if membership is None:
            raise LeagueError("You are not a member of this league", code="not_member", status_code=404)

        try:
            db.session.delete(membership)
            db.session.flush()
            # Drops the leaver's row and re-ranks whoever is left
            self.standings.refresh_standings(league_id, commit=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to remove user {user_id} from league {league_id}: {e}")
            raise InternalError("Could not leave league") from e

        invalidate_model_cache("Standing")
        logger.info(f"User {user_id} left league {league_id}")

    def delete_league(self, user_id, league_id):
        """Delete a league with its memberships and standings; creator only"""
        league = db.session.get(League, league_id)
        if league is None:
            raise LeagueError("League not found", code="league_not_found", status_code=404)

        if league.creator_id != user_id:
            raise LeagueError(
                "Only the league creator can delete it", code="not_league_creator", status_code=403
            )

        name = league.name
        try:
            db.session.delete(league)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to delete league {league_id}: {e}")
            raise InternalError("Could not delete league") from e

        invalidate_model_cache("Standing")
        logger.info(f"User {user_id} deleted league {league_id} ({name})")

    def list_members(self, user_id, league_id):
        """Memberships of a league in join order, visible to its members only"""
        league = db.session.get(League, league_id)
        if league is None:
            raise LeagueError("League not found", code="league_not_found", status_code=404)

        if not league.is_user_member(user_id):
            raise LeagueError(
                "Not a member of this league", code="not_member", status_code=403
            )

        return league.members.order_by(LeagueMember.joined_at, LeagueMember.id).all()

    def leagues_for_user(self, user_id):
        return (
            League.query.join(LeagueMember, LeagueMember.league_id == League.id)
            .filter(LeagueMember.user_id == user_id)
            .order_by(League.name)
            .all()
        )
