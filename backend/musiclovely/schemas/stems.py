"""Stem separation schemas."""
from datetime import datetime
from pydantic import BaseModel
from musiclovely.schemas.common import SeparationStatus


class SeparationResponse(BaseModel):
    id: str
    song_id: str
    generation_task_id: str
    audio_id: str
    separation_type: str
    separation_task_id: str | None
    status: SeparationStatus
    vocals_url: str | None
    instrumental_url: str | None
    error_message: str | None
    completed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class SeparationOutcome(BaseModel):
    """What a separation request produced and whether it reused a prior row."""
    success: bool
    status: SeparationStatus
    separation: SeparationResponse
    existing: bool = False
    message: str | None = None
