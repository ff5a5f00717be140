"""
ARQ Background Worker for Async Jobs
Handles overdue flag refreshes and progress recalculation
"""

import logging
import os

from arq.connections import RedisSettings
from arq.cron import cron

from . import models  # noqa: F401 - register models before any query
from .config import REDIS_DB, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT, REDIS_SSL, REDIS_URL
from .database import SessionLocal

logger = logging.getLogger(__name__)


def get_redis_settings() -> RedisSettings:
    """Queue connection settings, from the same REDIS_* config as the cache"""
    if REDIS_URL:
        settings = RedisSettings.from_dsn(REDIS_URL)
    else:
        settings = RedisSettings(
            host=REDIS_HOST,
            port=REDIS_PORT,
            password=REDIS_PASSWORD,
            database=REDIS_DB,
            ssl=REDIS_SSL,
        )
    settings.conn_timeout = 15
    settings.conn_retry_delay = 1
    return settings


async def refresh_overdue_task(ctx):
    """
    Hourly cron job to recompute is_overdue on tasks and milestones.
    """
    from .services.status_automation import refresh_overdue_statuses

    logger.info("Starting overdue status refresh")

    db = SessionLocal()
    try:
        summary = refresh_overdue_statuses(db)
        logger.info(f"Overdue refresh complete: {summary}")
        return summary
    except Exception as e:
        logger.error(f"❌ Overdue refresh failed: {str(e)}")
        raise
    finally:
        db.close()


async def recalculate_progress_task(ctx, booking_id: str):
    """
    Recompute every milestone of a booking and its weighted progress.

    Returns:
        dict with booking_id and project_progress
    """
    from .cache import invalidate_analytics_cache
    from .domain.milestones.progress import refresh_booking_rollups
    from .models import Booking

    logger.info(f"🚀 ARQ Worker: Recalculating progress for booking {booking_id}")

    db = SessionLocal()
    try:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            logger.error(f"❌ Booking not found: {booking_id}")
            raise Exception(f"Booking not found: {booking_id}")

        progress = refresh_booking_rollups(db, booking)
        db.commit()
        invalidate_analytics_cache()
        logger.info(f"✅ Booking {booking_id} progress recalculated: {progress}%")
        return {"booking_id": booking_id, "project_progress": progress}
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [
        refresh_overdue_task,
        recalculate_progress_task,
    ]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "20"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "300"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))  # Keep job results for 1 hour

    health_check_interval = 60

    max_tries = 3

    cron_jobs = [
        cron(refresh_overdue_task, minute=0),  # top of every hour
    ]

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
