"""Process-wide background scheduler. Started and stopped with the app."""
import logging
from datetime import datetime

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone="UTC")


def otp_job_id(draft_id: str) -> str:
    return f"otp-countdown-{draft_id}"


def schedule_otp_expiry(draft_id: str, run_at: datetime) -> None:
    """(Re)start the countdown for a draft; an earlier countdown for the same draft is replaced."""
    from app.services.otp import expire_challenge_job

    scheduler.add_job(
        expire_challenge_job,
        "date",
        run_date=run_at,
        args=[draft_id],
        id=otp_job_id(draft_id),
        replace_existing=True,
        misfire_grace_time=60,
    )


def cancel_otp_expiry(draft_id: str) -> None:
    try:
        scheduler.remove_job(otp_job_id(draft_id))
    except JobLookupError:
        pass


def start() -> None:
    if not scheduler.running:
        scheduler.start()
        logger.info("[Scheduler] started")


def shutdown() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
