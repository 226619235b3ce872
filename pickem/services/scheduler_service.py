"""
Background ESPN sync for Pick'em

An APScheduler ``BackgroundScheduler`` runs three jobs inside the Flask app
context: live scores while games are being played, an hourly refresh of the
current week, and a periodic check that loads the next week's games once
the calendar moves on. A fourth job refreshes betting lines when an odds
API key is configured.
"""

import atexit
import logging
from datetime import datetime, timedelta, timezone

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from pickem import db
from pickem.models import Game
from pickem.utils.data_sync import DataSync
from pickem.utils.odds_sync import OddsSync
from pickem.utils.nfl_calendar import (
    check_and_advance_week,
    get_current_season,
    get_current_week,
)
from pickem.utils.timezone_utils import to_storage

logger = logging.getLogger(__name__)

# A game is treated as live for this long after kickoff unless marked final
LIVE_WINDOW = timedelta(hours=5)

# (job id, display name, trigger factory, handler name, misfire grace seconds)
JOBS = (
    (
        "sync_live_games",
        "Sync Live Game Scores",
        lambda: IntervalTrigger(seconds=90),
        "_sync_live_games",
        30,
    ),
    (
        "hourly_sync",
        "Hourly Current Week Sync",
        lambda: CronTrigger(minute=0),
        "_hourly_sync",
        300,
    ),
    (
        "week_advance_check",
        "Advance NFL Week",
        lambda: CronTrigger(hour="*/6", minute=5),
        "_check_week_advance",
        3600,
    ),
    (
        "odds_sync",
        "Sync Betting Odds",
        lambda: CronTrigger(hour="*/4", minute=30),
        "_sync_odds",
        600,
    ),
)
JOB_IDS = tuple(job[0] for job in JOBS)


class SchedulerService:
    """Owns the background scheduler and its sync statistics"""

    def __init__(self, app=None):
        self.app = None
        self.scheduler = None
        self.data_sync = None
        self.odds_sync = None
        self.is_running = False
        self.sync_stats = {
            "last_sync": None,
            "total_syncs": 0,
            "successful_syncs": 0,
            "failed_syncs": 0,
            "last_error": None,
            "games_updated": 0,
        }

        if app:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        with app.app_context():
            self.data_sync = DataSync()
            self.odds_sync = OddsSync()

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        if self.is_running:
            return
        if self.scheduler is None:
            raise RuntimeError("Scheduler is not initialised; call init_app first")

        self.scheduler.remove_all_jobs()
        for job_id, name, trigger, handler, grace in JOBS:
            self.scheduler.add_job(
                func=getattr(self, handler),
                trigger=trigger(),
                id=job_id,
                name=name,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=grace,
            )

        self.scheduler.start()
        self.is_running = True
        logger.info(f"Scheduler started with jobs: {', '.join(JOB_IDS)}")

    def stop(self):
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Scheduler stopped")

    shutdown = stop

    def _run(self, label, job):
        """
        Run job inside the app context and record its outcome

        job returns (success, message, games_updated), or None when it had
        nothing to do.
        """
        with self.app.app_context():
            try:
                outcome = job()
            except SQLAlchemyError as e:
                db.session.rollback()
                self._record(False, error=str(e))
                logger.error(f"{label} failed: {e}", exc_info=True)
                return

            if outcome is None:
                return

            success, message, games_updated = outcome
            self._record(success, games_updated, None if success else message)
            if success:
                logger.info(f"{label}: {message}")
            else:
                logger.warning(f"{label} issues: {message}")

    def _in_game_window(self, now=None):
        """True when a current-week game kicked off within LIVE_WINDOW and is not final"""
        now = now or datetime.now(timezone.utc)

        return (
            Game.query.filter(
                Game.week == get_current_week(now),
                Game.season == get_current_season(now),
                Game.is_final.is_(False),
                Game.game_time <= to_storage(now),
                Game.game_time >= to_storage(now - LIVE_WINDOW),
            ).first()
            is not None
        )

    def _sync_live_games(self):
        def job():
            if not self._in_game_window():
                return None
            success, message, changed = self.data_sync.update_game_scores()
            return success, message, len(changed)

        self._run("Live score sync", job)

    def _hourly_sync(self):
        def job():
            success, message = self.data_sync.sync_current_week()
            db.session.expire_all()
            return success, message, 0

        self._run("Hourly sync", job)

    def _check_week_advance(self):
        def job():
            result = check_and_advance_week(self.data_sync)
            return result["success"], result["message"], result["games_loaded"]

        self._run("Week advance check", job)

    def _sync_odds(self):
        def job():
            if not self.odds_sync.is_configured():
                return None
            return self.odds_sync.update_week_odds()

        self._run("Odds sync", job)

    def _record(self, success, games_updated=0, error=None):
        stats = self.sync_stats
        stats["last_sync"] = datetime.now(timezone.utc)
        stats["total_syncs"] += 1
        stats["last_error"] = error

        if success:
            stats["successful_syncs"] += 1
            stats["games_updated"] += games_updated
        else:
            stats["failed_syncs"] += 1

    def get_status(self):
        jobs = []
        if self.scheduler and self.is_running:
            jobs = [
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                    "trigger": str(job.trigger),
                }
                for job in self.scheduler.get_jobs()
            ]

        stats = dict(self.sync_stats)
        if stats["last_sync"]:
            stats["last_sync"] = stats["last_sync"].isoformat()

        return {
            "is_running": self.is_running,
            "jobs": jobs,
            "stats": stats,
            "api": self.data_sync.get_rate_limit_status() if self.data_sync else None,
            "odds": self.odds_sync.get_status() if self.odds_sync else None,
        }

    def force_sync(self, sync_type="live"):
        """Run one job now, outside its schedule"""
        handlers = {
            "live": self._sync_live_games,
            "hourly": self._hourly_sync,
            "week": self._check_week_advance,
            "odds": self._sync_odds,
        }
        if sync_type not in handlers:
            return False, f"Unknown sync type: {sync_type}"
        if self.app is None:
            return False, "Scheduler is not initialised"

        handlers[sync_type]()
        return True, f"Manual {sync_type} sync completed"

    def _modify_job(self, job_id, verb):
        try:
            getattr(self.scheduler, f"{verb}_job")(job_id)
        except (JobLookupError, AttributeError) as e:
            return False, f"Failed to {verb} job: {e}"
        return True, f"Job {job_id} {verb}d"

    def pause_job(self, job_id):
        return self._modify_job(job_id, "pause")

    def resume_job(self, job_id):
        return self._modify_job(job_id, "resume")


scheduler_service = SchedulerService()
