"""Stem separation endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from musiclovely.api.deps import require_admin
from musiclovely.database import get_db
from musiclovely.schemas.stems import SeparationOutcome
from musiclovely.services.stem_separation import StemSeparationService
from musiclovely.utils.request_params import param, request_params

router = APIRouter(prefix="/stems", dependencies=[Depends(require_admin)])


@router.post("/separate", response_model=SeparationOutcome)
async def separate(request: Request, db: Session = Depends(get_db)):
    params = await request_params(request)
    song_id = param(params, "song_id", "songId")
    if not song_id:
        raise HTTPException(status_code=400, detail="song_id is required")
    return await StemSeparationService().request(db, song_id)


@router.post("/get-or-create", response_model=SeparationOutcome)
async def get_or_create(request: Request, db: Session = Depends(get_db)):
    params = await request_params(request)
    return await StemSeparationService().get_or_create(
        db,
        song_id=param(params, "song_id", "songId"),
        audio_id=param(params, "audio_id", "audioId", "clip_id"),
    )
