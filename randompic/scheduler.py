import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

RESCAN_JOB_ID = "rescan_all"


def create_scheduler() -> BackgroundScheduler:
    return BackgroundScheduler(
        timezone="UTC",
        job_defaults={"coalesce": True, "max_instances": 1},
    )


def start_scheduler(scheduler: BackgroundScheduler) -> None:
    logger.info("[Scheduler] Starting scheduler...")

    if not scheduler.running:
        scheduler.start()
        logger.info("[Scheduler] Scheduler started")
    else:
        logger.info("[Scheduler] Scheduler already running")


def schedule_rescan(scheduler: BackgroundScheduler, refresh_all, seconds: int) -> None:
    """Periodic full refresh, a backstop for galleries whose watch could not be opened."""
    if seconds <= 0:
        return
    scheduler.add_job(
        refresh_all,
        IntervalTrigger(seconds=seconds),
        id=RESCAN_JOB_ID,
        replace_existing=True,
    )
    logger.info(f"[Scheduler] Registered full rescan every {seconds}s")


def stop_scheduler(scheduler: BackgroundScheduler) -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[Scheduler] Scheduler stopped")
