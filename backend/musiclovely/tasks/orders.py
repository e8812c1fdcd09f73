"""Celery task for the pending-order checkout reminder sweep."""
from __future__ import annotations

import logging

from musiclovely.celery_app import celery_app
from musiclovely.database import SessionLocal
from musiclovely.services.pending_orders import PendingOrderSweep
from musiclovely.tasks.generation import _run

logger = logging.getLogger(__name__)


@celery_app.task(name="orders.check_pending_orders")
def check_pending_orders():
    db = SessionLocal()
    try:
        result = _run(PendingOrderSweep().run(db))
        return result.model_dump(exclude_none=True)
    except Exception as e:
        logger.exception(f"Pending-order sweep failed: {e}")
        return {"success": False, "error": str(e)}
    finally:
        db.close()
