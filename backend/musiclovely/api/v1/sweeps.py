"""Cron-triggered sweeps. The same work runs on Celery beat; these let an
external scheduler drive it instead."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from musiclovely.api.deps import require_cron
from musiclovely.database import get_db
from musiclovely.schemas.orders import PendingOrderSweepResult, PollSweepResult, ReleaseSweepResult
from musiclovely.services.pending_orders import PendingOrderSweep
from musiclovely.services.poll_sweep import PollSweep
from musiclovely.services.release_scheduler import ReleaseScheduler

router = APIRouter(dependencies=[Depends(require_cron)])


@router.post("/orders/check-pending", response_model=PendingOrderSweepResult, response_model_exclude_none=True)
async def check_pending_orders(db: Session = Depends(get_db)):
    return await PendingOrderSweep().run(db)


@router.post("/jobs/poll-processing", response_model=PollSweepResult)
async def poll_processing_jobs(db: Session = Depends(get_db)):
    return await PollSweep().run(db)


@router.post("/songs/release-due", response_model=ReleaseSweepResult, response_model_exclude_none=True)
async def release_due_songs(db: Session = Depends(get_db)):
    return await ReleaseScheduler().run(db)
