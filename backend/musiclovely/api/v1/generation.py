"""Admin generation endpoints: poll a provider task, submit a job, start a new music."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from musiclovely.api.deps import require_admin
from musiclovely.database import get_db
from musiclovely.schemas.generation import SubmitResult
from musiclovely.schemas.orders import NewMusicResult
from musiclovely.services.generation_service import GenerationService
from musiclovely.services.music_orders import create_new_music
from musiclovely.services.retry_handler import ProviderError
from musiclovely.services.status_poller import StatusPoller
from musiclovely.utils.request_params import param, request_params

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


@router.api_route("/admin/poll-audio", methods=["GET", "POST"])
async def poll_audio(request: Request):
    """Poll the provider for a task. Every outcome is a 200 with a ``status`` field."""
    params = await request_params(request)
    task_id = param(params, "task_id", "taskId") or ""
    result = await StatusPoller().poll(task_id)
    return result.to_response()


@router.post("/admin/generate-audio", response_model=SubmitResult, response_model_exclude_none=True)
async def generate_audio(request: Request, db: Session = Depends(get_db)):
    params = await request_params(request)
    job_id = param(params, "job_id", "jobId")
    if not job_id:
        raise HTTPException(status_code=400, detail="job_id is required")

    try:
        return await GenerationService().submit(db, job_id)
    except ProviderError as exc:
        # Already written onto the job by the service
        return SubmitResult(success=False, job_id=job_id, status="failed", message=str(exc))


@router.post("/admin/create-new-music", response_model=NewMusicResult)
async def create_music(request: Request, db: Session = Depends(get_db)):
    params = await request_params(request)
    order_id = param(params, "order_id", "orderId")
    if not order_id:
        raise HTTPException(status_code=400, detail="order_id is required")
    return create_new_music(
        db,
        order_id,
        lyrics=params.get("lyrics"),
        voice=param(params, "voice"),
    )
