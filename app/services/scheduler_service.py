"""
Completed-race scoring sweep

Results normally arrive through race_service.record_race_results, which
scores in the same transaction. This background job catches anything left
behind, e.g. races marked completed directly in the database or a scoring
run that failed, by periodically scoring completed races that still have
pending predictions.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app import db
from app.services import prediction_service, race_service

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages the background scoring sweep"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.sweep_stats = self._empty_stats()

        if app:
            self.init_app(app)

    @staticmethod
    def _empty_stats():
        return {
            "last_sweep": None,
            "total_sweeps": 0,
            "successful_sweeps": 0,
            "failed_sweeps": 0,
            "last_error": None,
            "races_scored": 0,
            "predictions_scored": 0,
        }

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        # Register shutdown
        atexit.register(self.shutdown)

        # Start scheduler if enabled
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

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        minutes = self.app.config.get("SCORING_SWEEP_MINUTES", 60)

        self.scheduler.add_job(
            func=self.score_pending_races,
            trigger=IntervalTrigger(minutes=minutes),
            id="score_pending_races",
            name="Score Completed Races",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        logger.info(f"Scoring sweep scheduled every {minutes} minutes")

    def score_pending_races(self):
        """
        Score every completed race or sprint race with pending predictions.

        Each race is scored in its own transaction so one failure does not
        hold back the others. Returns the number of races scored.
        """
        with self.app.app_context():
            races_scored = 0
            predictions_scored = 0
            errors = []

            try:
                pending = race_service.get_races_to_score()
            except Exception as e:
                db.session.rollback()
                self._update_stats(False, error=str(e))
                logger.error(f"Error loading races to score: {e}", exc_info=True)
                return 0

            for race in pending:
                try:
                    if race.is_sprint:
                        scored = prediction_service.score_sprint_race(race.id)
                    else:
                        scored = prediction_service.score_race(race.id)
                    races_scored += 1
                    predictions_scored += scored
                except Exception as e:
                    db.session.rollback()
                    errors.append(f"{race.id}: {e}")
                    logger.error(f"Error scoring race {race.id}: {e}", exc_info=True)

            if races_scored:
                logger.info(
                    f"Scoring sweep: {predictions_scored} predictions "
                    f"across {races_scored} races"
                )

            self._update_stats(
                not errors,
                races_scored,
                predictions_scored,
                error="; ".join(errors) or None,
            )
            return races_scored

    def _update_stats(self, success, races_scored=0, predictions_scored=0, error=None):
        self.sweep_stats["last_sweep"] = datetime.now(timezone.utc)
        self.sweep_stats["total_sweeps"] += 1
        self.sweep_stats["races_scored"] += races_scored
        self.sweep_stats["predictions_scored"] += predictions_scored

        if success:
            self.sweep_stats["successful_sweeps"] += 1
            self.sweep_stats["last_error"] = None
        else:
            self.sweep_stats["failed_sweeps"] += 1
            self.sweep_stats["last_error"] = error

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = getattr(job, "next_run_time", None)
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        return {"is_running": self.is_running, "jobs": jobs, "stats": self.sweep_stats}


# Global scheduler instance
scheduler_service = SchedulerService()
