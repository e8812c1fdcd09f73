"""Order / email sweep schemas."""
from pydantic import BaseModel, Field


class SweepError(BaseModel):
    order_id: str
    error: str


class PendingOrderSweepResult(BaseModel):
    success: bool = True
    processed: int = 0
    total_found: int = 0
    email_processed: int = 0
    already_in_email_funnel: int = 0
    processed_order_ids: list[str] = Field(default_factory=list)
    errors: list[SweepError] | None = None


class EmailSendResult(BaseModel):
    success: bool
    email_id: str | None = None
    error: str | None = None
    funnel_id: str | None = None


class PollSweepResult(BaseModel):
    success: bool = True
    total: int = 0
    completed: int = 0
    failed: int = 0
    still_processing: int = 0
    retried: int = 0


class NewMusicResult(BaseModel):
    success: bool = True
    message: str
    order_id: str
    job_id: str
    approval_id: str | None = None
    music_number: int
    total_musics: int
    has_lyrics: bool


class ReleaseSweepResult(BaseModel):
    success: bool = True
    songs_found: int = 0
    processed_orders: int = 0
    songs_released: int = 0
    emails_sent: int = 0
    errors: list[SweepError] | None = None
