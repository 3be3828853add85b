"""
=============================================================================
SCHEDULER.PY — Background housekeeping
=============================================================================
The only periodic job: purge friend task requests that expired while
still pending. Quest resets are NOT scheduled, they are reconciled when
the player opens their quests.

Uses APScheduler's AsyncIOScheduler, started from the FastAPI lifespan.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from database import SessionLocal
from models import FriendTaskRequest, TaskRequestStatus

logger = logging.getLogger("tamagotree.scheduler")

scheduler: AsyncIOScheduler = None


# =============================================================================
# ===================== EXPIRED FRIEND TASKS ==================================
# =============================================================================

def purge_expired_task_requests(db: Session, now: Optional[datetime] = None) -> int:
    """Deletes pending requests past expires_at. Returns how many went away."""
    now = now or datetime.utcnow()
    deleted = db.query(FriendTaskRequest).filter(
        FriendTaskRequest.status == TaskRequestStatus.pending.value,
        FriendTaskRequest.expires_at < now
    ).delete(synchronize_session=False)
    db.commit()
    if deleted:
        logger.info(f"🧹 {deleted} expired friend task requests purged")
    return deleted


async def expired_requests_job():
    db = SessionLocal()
    try:
        purge_expired_task_requests(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Error purging expired friend task requests: {e}")
    finally:
        db.close()


# =============================================================================
# ===================== SCHEDULER LIFECYCLE ===================================
# =============================================================================

def create_scheduler() -> AsyncIOScheduler:
    global scheduler

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        expired_requests_job,
        CronTrigger(minute="*/15"),
        id="purge_expired_task_requests",
        name="Purge expired friend task requests",
        replace_existing=True
    )

    logger.info("⏰ Scheduler configured: expired request purge every 15 minutes")
    return scheduler


def start_scheduler():
    global scheduler
    if scheduler and not scheduler.running:
        scheduler.start()
        logger.info("⏰ Scheduler started")


def stop_scheduler():
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("⏰ Scheduler stopped")
