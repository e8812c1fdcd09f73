"""Lyrics approval handoff schemas."""
from pydantic import BaseModel


class ApprovalResult(BaseModel):
    success: bool = True
    message: str
    job_id: str
    approval_id: str
    generation_dispatched: bool = False
    forced_regeneration: bool = False
