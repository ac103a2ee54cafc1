"""
Background scheduler: runs periodic jobs inside the FastAPI process.

Jobs:
  - Recurring generation (daily, GENERATION_CRON_HOUR:GENERATION_CRON_MINUTE UTC)
"""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from recurring_ledger.config import get_settings

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(daemon=True)


def _run_generation():
    from recurring_ledger.infrastructure.db.session import get_session_factory
    from recurring_ledger.application.generation import GenerationEngine

    settings = get_settings()
    Session = get_session_factory()
    db = Session()
    try:
        result = GenerationEngine(
            db,
            session_factory=Session,
            max_workers=settings.GENERATION_WORKERS,
        ).generate()
        logger.info("Recurring generation job: %d created, %d skipped", result.created, result.skipped)
    except Exception:
        logger.exception("Recurring generation job failed")
    finally:
        db.close()


def start_scheduler():
    """Start the background scheduler with all periodic jobs."""
    settings = get_settings()

    scheduler.add_job(
        _run_generation,
        CronTrigger(hour=settings.GENERATION_CRON_HOUR, minute=settings.GENERATION_CRON_MINUTE, timezone="UTC"),
        id="recurring_generation",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started: recurring_generation (%02d:%02d UTC)",
        settings.GENERATION_CRON_HOUR, settings.GENERATION_CRON_MINUTE,
    )


def shutdown_scheduler():
    """Gracefully stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
