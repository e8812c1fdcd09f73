"""Celery tasks for audio generation.

``submit_generation`` is the fire-and-forget half of lyrics approval;
``poll_processing_jobs`` is the beat-driven sweep. Both drive async
service code through a short-lived event loop.
"""
from __future__ import annotations

import asyncio
import logging

from musiclovely.celery_app import celery_app
from musiclovely.database import SessionLocal
from musiclovely.models import GenerationJob
from musiclovely.services import job_state
from musiclovely.services.errors import ServiceError
from musiclovely.services.generation_service import GenerationService
from musiclovely.services.http_client_manager import close_all_clients
from musiclovely.services.poll_sweep import PollSweep

logger = logging.getLogger(__name__)


def _run(coro):
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(close_all_clients())
        loop.close()


def friendly_error(exc: Exception) -> str:
    error_str = str(exc)
    if "401" in error_str or "403" in error_str or "SUNO_API_KEY" in error_str:
        return f"Authentication failed with the music provider. Check SUNO_API_KEY. ({error_str})"
    if "429" in error_str or "rate limit" in error_str.lower():
        return f"Rate limit exceeded at the music provider. Try again later. ({error_str})"
    if "timeout" in error_str.lower() or "timed out" in error_str.lower():
        return f"Request to the music provider timed out. ({error_str})"
    if "connection" in error_str.lower() or "connect" in error_str.lower():
        return f"Could not connect to the music provider. ({error_str})"
    return f"Generation request failed: {error_str}"


@celery_app.task(name="generation.submit_generation")
def submit_generation(job_id: str):
    """Submit an approved job to the provider; errors end up on the job row."""
    db = SessionLocal()
    try:
        result = _run(GenerationService().submit(db, job_id))
        return result.model_dump(mode="json")
    except ServiceError as e:
        # Conflicts and missing jobs leave the row alone; the service has
        # already recorded anything raised after its claim.
        logger.warning(f"Generation for job {job_id} not submitted: {e.message}")
        return {"error": e.message}
    except Exception as e:
        logger.exception(f"Celery task error for job {job_id}: {e}")
        friendly = friendly_error(e)
        try:
            db.rollback()
            job = db.query(GenerationJob).filter(GenerationJob.id == job_id).first()
            if job:
                job_state.fail_job(db, job, friendly)
        except Exception:
            logger.exception(f"Could not record failure on job {job_id}")
        return {"error": friendly}
    finally:
        db.close()


@celery_app.task(name="generation.poll_processing_jobs")
def poll_processing_jobs():
    db = SessionLocal()
    try:
        result = _run(PollSweep().run(db))
        return result.model_dump()
    except Exception as e:
        logger.exception(f"Poll sweep failed: {e}")
        return {"error": str(e)}
    finally:
        db.close()
