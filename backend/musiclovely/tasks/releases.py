"""Celery task that releases songs whose ``release_at`` has passed."""
from __future__ import annotations

import logging

from musiclovely.celery_app import celery_app
from musiclovely.database import SessionLocal
from musiclovely.services.release_scheduler import ReleaseScheduler
from musiclovely.tasks.generation import _run

logger = logging.getLogger(__name__)


@celery_app.task(name="releases.release_due_songs")
def release_due_songs():
    db = SessionLocal()
    try:
        result = _run(ReleaseScheduler().run(db))
        return result.model_dump(exclude_none=True)
    except Exception as e:
        logger.exception(f"Release sweep failed: {e}")
        return {"success": False, "error": str(e)}
    finally:
        db.close()
