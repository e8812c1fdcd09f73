"""Provider callback receivers."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from musiclovely.database import get_db
from musiclovely.services.callback_service import CallbackService
from musiclovely.utils.request_params import param, read_body

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/callbacks")


@router.post("/suno")
async def suno_callback(request: Request, db: Session = Depends(get_db)):
    payload = await read_body(request)
    if not payload:
        raise HTTPException(status_code=400, detail="Callback body must be a JSON object")
    return await CallbackService().handle_generation(db, payload)


@router.post("/suno-stems")
async def suno_stems_callback(request: Request, db: Session = Depends(get_db)):
    """Always answers 200 so the provider does not keep redelivering."""
    payload = await read_body(request)
    query = dict(request.query_params)
    return await CallbackService().handle_stems(
        db,
        payload,
        song_id=param(query, "song_id"),
        separation_id=param(query, "separation_id"),
    )
