"""
Gameweek Pick'em Background Scheduler Service

Runs the scoring pass on an interval with APScheduler: re-score every
gameweek with finished fixtures, rebuild standings, and optionally move the
current gameweek on once all of its fixtures are finished. Scoring and
standings are idempotent, so a pass that overlaps with another process or
repeats after a failure converges on the same rows.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from pickem import db
from pickem.services.gameweeks import GameweekService
from pickem.services.scoring import ScoringEngine
from pickem.services.standings import StandingsAggregator

logger = logging.getLogger(__name__)


def _empty_stats():
    return {
        "last_run": None,
        "total_runs": 0,
        "successful_runs": 0,
        "failed_runs": 0,
        "last_error": None,
        "picks_scored": 0,
    }


class SchedulerService:
    """Manages the background scoring and standings jobs"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.scoring = None
        self.standings = None
        self.gameweeks = None
        self.is_running = False
        self.run_stats = _empty_stats()

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        self.scoring = ScoringEngine()
        self.standings = StandingsAggregator()
        self.gameweeks = GameweekService(scoring=self.scoring, standings=self.standings)

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()
            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Scheduler stopped")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        interval = self.app.config.get("SCORING_INTERVAL_MINUTES", 10)

        self.scheduler.add_job(
            func=self._scheduled_scoring_pass,
            trigger=IntervalTrigger(minutes=interval),
            id="scoring_pass",
            name="Score Gameweeks and Refresh Standings",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        # Daily ranking check (3 AM UTC)
        self.scheduler.add_job(
            func=self._integrity_check,
            trigger=CronTrigger(hour=3, minute=0),
            id="ranking_integrity",
            name="Ranking Integrity Check",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        logger.info(f"Core scheduled jobs added (scoring every {interval} minutes)")

    def run_scoring_pass(self):
        """
        Score, rebuild standings and, when enabled, advance the gameweek.

        Must be called inside an app context. Returns a summary dict.
        """
        summaries = self.scoring.score_all_gameweeks()
        picks_scored = sum(summary.picks_scored for summary in summaries)

        self.standings.refresh_all_standings()

        result = {
            "gameweeks_scored": len(summaries),
            "picks_scored": picks_scored,
            "advance": None,
        }

        if self.app.config.get("AUTO_ADVANCE_GAMEWEEK", False):
            result["advance"] = self.gameweeks.advance().to_dict()

        return result

    def _scheduled_scoring_pass(self):
        with self.app.app_context():
            try:
                result = self.run_scoring_pass()
                self._update_stats(True, result["picks_scored"])
                if result["picks_scored"]:
                    logger.info(
                        f"Scoring pass: {result['picks_scored']} picks across "
                        f"{result['gameweeks_scored']} gameweeks"
                    )
            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.run_stats["last_error"] = str(e)
                logger.error(f"Error in scoring pass: {e}", exc_info=True)

    def _integrity_check(self):
        with self.app.app_context():
            try:
                issues = self.standings.check_ranking_integrity()
                if issues:
                    # Stored ranks drifted; a rebuild puts them back
                    self.standings.refresh_all_standings()
                    logger.warning(f"Rebuilt standings after {len(issues)} integrity issues")
            except Exception as e:
                db.session.rollback()
                logger.error(f"Error in ranking integrity check: {e}", exc_info=True)

    def _update_stats(self, success, picks_scored=0):
        self.run_stats["last_run"] = datetime.now(timezone.utc)
        self.run_stats["total_runs"] += 1

        if success:
            self.run_stats["successful_runs"] += 1
            self.run_stats["picks_scored"] += picks_scored
            self.run_stats["last_error"] = None
        else:
            self.run_stats["failed_runs"] += 1

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.run_stats)
        if stats["last_run"]:
            stats["last_run"] = stats["last_run"].isoformat()

        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}


# Global scheduler instance
scheduler_service = SchedulerService()
