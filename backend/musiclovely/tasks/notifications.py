"""Celery task for the customer "music ready" email."""
from __future__ import annotations

import logging

from musiclovely.celery_app import celery_app
from musiclovely.database import SessionLocal
from musiclovely.services.errors import ServiceError
from musiclovely.services.notifications import NotificationService
from musiclovely.tasks.generation import _run

logger = logging.getLogger(__name__)


@celery_app.task(name="notifications.send_music_ready_email")
def send_music_ready_email(order_id: str, song_id: str | None = None):
    db = SessionLocal()
    try:
        result = _run(NotificationService().send_music_ready(db, order_id, song_id))
        return result.model_dump()
    except ServiceError as e:
        logger.warning(f"Music-ready email for order {order_id} not sent: {e.message}")
        return {"success": False, "error": e.message}
    except Exception as e:
        logger.exception(f"Music-ready email task failed for order {order_id}: {e}")
        return {"success": False, "error": str(e)}
    finally:
        db.close()
