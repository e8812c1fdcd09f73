"""Startup recovery shared between the FastAPI lifespan and Celery worker_init.

A worker killed between claiming a job and storing the provider task id
leaves the claim behind, and the claim blocks every later submission of
that job. ``recover_stale_submissions()`` releases such claims.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import or_

logger = logging.getLogger(__name__)


def recover_stale_submissions(db=None, now: datetime | None = None) -> int:
    """Fail and release jobs claimed longer ago than ``STALE_SUBMISSION_MINUTES``
    that never received a task id.

    Returns the number of jobs recovered.
    """
    from musiclovely.config import get_settings
    from musiclovely.database import SessionLocal
    from musiclovely.models import GenerationJob
    from musiclovely.schemas.common import JobStatus
    from musiclovely.utils.helpers import short_id, utcnow

    settings = get_settings()
    now = now or utcnow()
    cutoff = now - timedelta(minutes=settings.STALE_SUBMISSION_MINUTES)

    owns_session = db is None
    db = db or SessionLocal()
    count = 0
    try:
        stale = (
            db.query(GenerationJob)
            .filter(
                GenerationJob.submitted_at.isnot(None),
                GenerationJob.submitted_at <= cutoff,
                or_(GenerationJob.suno_task_id.is_(None), GenerationJob.suno_task_id == ""),
                GenerationJob.status != JobStatus.SUCCEEDED.value,
            )
            .all()
        )
        for job in stale:
            logger.warning(
                "Releasing stale submission claim on job %s (status=%s)",
                short_id(job.id), job.status,
            )
            job.status = JobStatus.FAILED.value
            job.submitted_at = None
            job.progress_pct = 0
            job.error_message = (
                "Generation request was interrupted by a restart. "
                "Approve the lyrics again to retry."
            )
            job.completed_at = now
        if stale:
            db.commit()
            count = len(stale)
            logger.info("Recovered %d stale submission(s)", count)
    except Exception as exc:
        logger.warning("Could not recover stale submissions: %s", exc)
        db.rollback()
    finally:
        if owns_session:
            db.close()
    return count
