"""
Background job scheduler

Runs the live RTP poll cycle on a fixed interval and the daily history cleanup
"""

import asyncio
import threading
from datetime import datetime
from typing import Any, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from config import get_settings
from database import get_db_context
from database import repository
from engine.rtp_monitor import CycleResult, RTPMonitor
from events.bus import ERROR, bus, make_event


settings = get_settings()
scheduler = BackgroundScheduler()

POLL_JOB_ID = "rtp_poll"
CLEANUP_JOB_ID = "history_cleanup"

# Held for the whole cycle; a tick that finds it taken is skipped
_cycle_lock = threading.Lock()
_monitor: Optional[RTPMonitor] = None


def get_monitor() -> RTPMonitor:
    global _monitor
    if _monitor is None:
        _monitor = RTPMonitor(publisher=bus.publish_sync)
    return _monitor


def run_rtp_cycle() -> Optional[CycleResult]:
    """Fetch, decode, derive and publish one cycle unless one is already running"""
    if not _cycle_lock.acquire(blocking=False):
        logger.warning("Previous RTP cycle still running, skipping this tick")
        return None

    try:
        return asyncio.run(get_monitor().run_cycle())
    except Exception as e:
        logger.error(f"RTP cycle failed: {e}")
        bus.publish_sync(make_event(ERROR, {"message": f"RTP cycle failed: {e}"}))
        return None
    finally:
        _cycle_lock.release()


def run_cleanup(days: Optional[int] = None) -> int:
    """Delete history older than the retention period"""
    if days is None:
        days = settings.HISTORY_RETENTION_DAYS
    try:
        with get_db_context() as db:
            return repository.cleanup_old_data(db, days)
    except Exception as e:
        logger.error(f"History cleanup failed: {e}")
        return 0


def start_scheduler(run_immediately: bool = True):
    """Start the background scheduler"""
    if scheduler.running:
        logger.info("Scheduler already running")
        return

    # Live RTP poll - every few seconds, never overlapping
    scheduler.add_job(
        run_rtp_cycle,
        trigger=IntervalTrigger(seconds=settings.UPDATE_INTERVAL_SECONDS),
        id=POLL_JOB_ID,
        name="Live RTP Poll",
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now() if run_immediately else None,
        replace_existing=True
    )
    if not run_immediately:
        # Added paused; resume_polling() starts it
        logger.info("RTP polling added in paused state")

    # History cleanup - 3 AM
    scheduler.add_job(
        run_cleanup,
        trigger=CronTrigger(hour=3, minute=0),
        id=CLEANUP_JOB_ID,
        name="History Cleanup",
        replace_existing=True
    )

    scheduler.start()
    logger.info("✓ Scheduler started")
    logger.info(f"Active jobs: {len(scheduler.get_jobs())}")


def is_polling() -> bool:
    job = scheduler.get_job(POLL_JOB_ID)
    return job is not None and job.next_run_time is not None


def pause_polling() -> bool:
    """Stop polling without tearing the scheduler down; False if not scheduled"""
    if scheduler.get_job(POLL_JOB_ID) is None:
        return False
    scheduler.pause_job(POLL_JOB_ID)
    logger.info("RTP polling paused")
    return True


def resume_polling() -> bool:
    """Resume polling, starting the scheduler when needed"""
    if not scheduler.running:
        start_scheduler()
        return True
    if scheduler.get_job(POLL_JOB_ID) is None:
        return False
    scheduler.resume_job(POLL_JOB_ID)
    logger.info("RTP polling resumed")
    return True


def scheduler_status() -> Dict[str, Any]:
    return {
        "running": scheduler.running,
        "polling": is_polling() if scheduler.running else False,
        "interval_seconds": settings.UPDATE_INTERVAL_SECONDS,
    }


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")


if __name__ == "__main__":
    start_scheduler()

    try:
        asyncio.new_event_loop().run_forever()
    except (KeyboardInterrupt, SystemExit):
        stop_scheduler()
