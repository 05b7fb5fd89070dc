"""
Standings Aggregator

Standings are a pure function of the scores and picks of a population:
build_standings folds them into ranked entries, and refresh_standings
replaces every stored row of a scope with that result in one transaction.
Scope None is the global leaderboard; an integer scope is a league id.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.models import GameweekScore, League, LeagueMember, Pick, Standing, User
from pickem.utils.cache_utils import cached_query, invalidate_model_cache

logger = logging.getLogger(__name__)

GLOBAL = None


class StandingEntry:
    """Computed leaderboard line before it is stored"""

    def __init__(self, user_id, total_points=0, correct_picks=0, total_picks=0):
        self.user_id = user_id
        self.total_points = total_points
        self.correct_picks = correct_picks
        self.total_picks = total_picks
        self.current_rank = None

    def as_row(self, league_id=None):
        return Standing(
            user_id=self.user_id,
            league_id=league_id,
            total_points=self.total_points,
            correct_picks=self.correct_picks,
            total_picks=self.total_picks,
            current_rank=self.current_rank,
        )

    def __repr__(self):
        return f"<StandingEntry user_id={self.user_id} points={self.total_points} rank={self.current_rank}>"


def competition_ranks(totals):
    """
    Standard competition ranks for totals already sorted best-first.

    Ties share the better rank and the next distinct total resumes at its
    position: [10, 10, 7] -> [1, 1, 3].
    """
    ranks = []
    previous = object()
    for position, total in enumerate(totals, start=1):
        if total != previous:
            rank = position
            previous = total
        ranks.append(rank)
    return ranks


def build_standings(user_ids, scores, pick_counts):
    """
    Fold scores and pick counts into ranked entries.

    Args:
        user_ids: the population being ranked
        scores: iterable of (user_id, points, is_correct)
        pick_counts: mapping of user_id to picks made

    Returns:
        StandingEntry list ordered by rank, then correct picks, then user id
    """
    entries = {user_id: StandingEntry(user_id) for user_id in user_ids}

    for user_id, points, is_correct in scores:
        entry = entries.get(user_id)
        if entry is None:
            continue
        entry.total_points += points
        if is_correct:
            entry.correct_picks += 1

    for user_id, count in pick_counts.items():
        if user_id in entries:
            entries[user_id].total_picks = count

    ordered = sorted(
        entries.values(),
        key=lambda e: (-e.total_points, -e.correct_picks, e.user_id),
    )
    for entry, rank in zip(ordered, competition_ranks([e.total_points for e in ordered])):
        entry.current_rank = rank

    return ordered


class StandingsAggregator:
    def compute_standings(self, league_id=GLOBAL):
        """Ranked entries for a scope, without writing anything"""
        user_ids = self._population(league_id)
        if not user_ids:
            return []

        scores = (
            db.session.query(
                GameweekScore.user_id, GameweekScore.points, GameweekScore.is_correct
            )
            .filter(GameweekScore.user_id.in_(user_ids))
            .all()
        )
        pick_counts = dict(
            db.session.query(Pick.user_id, db.func.count(Pick.id))
            .filter(Pick.user_id.in_(user_ids))
            .group_by(Pick.user_id)
            .all()
        )

        return build_standings(user_ids, scores, pick_counts)

    def refresh_standings(self, league_id=GLOBAL, commit=True):
        """
        Replace every Standing row of the scope with freshly computed ones.

        With commit=False the rows are only flushed into the caller's
        transaction; the caller commits and then clears the standings cache.
        """
        entries = self.compute_standings(league_id)

        try:
            self._scope_query(league_id).delete(synchronize_session="fetch")
            db.session.add_all([entry.as_row(league_id) for entry in entries])
            if commit:
                db.session.commit()
            else:
                db.session.flush()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(
                f"Standings refresh failed for {self._scope_name(league_id)}: {e}",
                exc_info=True,
            )
            raise

        if commit:
            invalidate_model_cache("Standing")
        logger.info(
            f"Refreshed {self._scope_name(league_id)} standings: {len(entries)} users"
        )
        return entries

    def refresh_all_standings(self):
        """Refresh the global scope and every league"""
        refreshed = {GLOBAL: self.refresh_standings(GLOBAL)}
        for league in League.query.order_by(League.id).all():
            refreshed[league.id] = self.refresh_standings(league.id)
        return refreshed

    def check_ranking_integrity(self):
        """
        Compare stored standings with a fresh computation.

        Returns a list of issue dicts; empty when every scope is up to date.
        """
        issues = []
        scopes = [GLOBAL] + [league.id for league in League.query.all()]

        for league_id in scopes:
            expected = {e.user_id: e for e in self.compute_standings(league_id)}
            stored = {row.user_id: row for row in self._scope_query(league_id).all()}

            for user_id in expected.keys() - stored.keys():
                issues.append(self._issue("missing_standing", league_id, user_id))
            for user_id in stored.keys() - expected.keys():
                issues.append(self._issue("orphan_standing", league_id, user_id))

            for user_id in expected.keys() & stored.keys():
                want, have = expected[user_id], stored[user_id]
                if (want.total_points, want.correct_picks, want.total_picks) != (
                    have.total_points,
                    have.correct_picks,
                    have.total_picks,
                ):
                    issues.append(self._issue("stale_totals", league_id, user_id))
                elif want.current_rank != have.current_rank:
                    issues.append(self._issue("rank_mismatch", league_id, user_id))

        if issues:
            logger.warning(f"Ranking integrity check found {len(issues)} issues")
        return issues

    def _population(self, league_id):
        if league_id is GLOBAL:
            rows = db.session.query(User.id).filter(User.is_active.is_(True)).all()
        else:
            rows = (
                db.session.query(LeagueMember.user_id)
                .filter(LeagueMember.league_id == league_id)
                .all()
            )
        return [row[0] for row in rows]

    def _scope_query(self, league_id):
        if league_id is GLOBAL:
            return Standing.query.filter(Standing.league_id.is_(None))
        return Standing.query.filter(Standing.league_id == league_id)

    def _scope_name(self, league_id):
        return "global" if league_id is GLOBAL else f"league {league_id}"

    def _issue(self, issue_type, league_id, user_id):
        return {"issue_type": issue_type, "league_id": league_id, "user_id": user_id}


@cached_query("Standing", timeout_key="STANDINGS_CACHE_TIMEOUT")
def get_standings_payload(league_id=GLOBAL):
    """Serialized standings for a scope, cached until the next refresh"""
    return [row.to_dict() for row in Standing.for_scope(league_id)]
