"""
ARQ Background Worker for Scheduled Jobs
Runs the daily booking reminder sweep
"""

import logging
import os

from arq.connections import RedisSettings
from arq.cron import cron

from . import models  # noqa: F401 - register models with Base
from .database import SessionLocal
from .services.reminder_service import send_booking_reminders

logger = logging.getLogger(__name__)


def get_redis_settings() -> RedisSettings:
    redis_url = os.getenv("REDIS_URL")
    if redis_url:
        return RedisSettings.from_dsn(redis_url)

    return RedisSettings(
        host=os.getenv("REDIS_HOST", "localhost"),
        port=int(os.getenv("REDIS_PORT", "6379")),
        password=os.getenv("REDIS_PASSWORD"),
        ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
    )


async def booking_reminder_task(ctx):
    """Send reminders for tomorrow's confirmed bookings"""
    logger.info(f"🔄 Starting booking reminder sweep (job {ctx.get('job_id', 'cron')})")

    db = SessionLocal()
    try:
        summary = await send_booking_reminders(db)
        logger.info(
            f"✅ Booking reminders complete: {summary.get('emailsSent', 0)} emails, "
            f"{summary.get('smsSent', 0)} SMS for {summary.get('date')}"
        )
        return summary
    except Exception as e:
        logger.error(f"❌ Booking reminder sweep failed: {str(e)}")
        raise
    finally:
        db.close()


class WorkerSettings:
    """arq worker entry point: `arq roam_api.worker.WorkerSettings`"""

    functions = [booking_reminder_task]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "10"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "600"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))

    max_tries = 3

    cron_jobs = [
        cron(booking_reminder_task, hour=14, minute=0),  # 2 PM UTC, morning in US time zones
    ]

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
