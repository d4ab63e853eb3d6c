"""Dedicated APScheduler worker process."""
from __future__ import annotations

import logging
import signal
import threading

from apscheduler.schedulers.background import BackgroundScheduler

from dayplanner.core.config import settings
from dayplanner.core.logging import configure_logging
from dayplanner.db.session import SessionLocal
from dayplanner.services.job_runner import run_daily_schedule_for_all_users

logger = logging.getLogger(__name__)

DAILY_SCHEDULE_JOB_ID = "daily_schedule_job"


def main() -> None:
    configure_logging(log_level=settings.log_level)
    logger.info("Scheduler worker starting (enabled=%s)", settings.scheduler_enabled)

    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

    if settings.scheduler_enabled:
        register_jobs(scheduler)
        scheduler.start()
        if settings.jobs_run_on_startup:
            logger.info("Running daily schedule job once on startup")
            run_daily_schedule_job()
    else:
        logger.warning("Scheduler disabled via config; worker will idle")

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker shutting down (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=False)
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        stop_event.wait()
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


def register_jobs(scheduler: BackgroundScheduler) -> None:
    scheduler.add_job(
        run_daily_schedule_job,
        trigger="cron",
        hour=settings.daily_job_hour,
        minute=settings.daily_job_minute,
        id=DAILY_SCHEDULE_JOB_ID,
        replace_existing=True,
    )
    logger.info(
        "Registered daily schedule job (time=%02d:%02d %s)",
        settings.daily_job_hour,
        settings.daily_job_minute,
        settings.scheduler_timezone,
    )


def run_daily_schedule_job() -> None:
    session = SessionLocal()
    try:
        result = run_daily_schedule_for_all_users(session)
        logger.info(
            "Daily schedule job complete: users=%s, schedules=%s, fallback=%s, failed=%s",
            result.users_processed,
            result.schedules_written,
            result.fallback_used,
            len(result.failed_user_ids),
        )
    except Exception:  # pragma: no cover - defensive guard
        logger.exception("Daily schedule job failed")
    finally:
        session.close()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
