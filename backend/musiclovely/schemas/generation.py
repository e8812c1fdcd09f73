"""Status-poll results and job schemas."""
from pydantic import BaseModel
from musiclovely.schemas.common import JobStatus, PollStatus


class PollResult(BaseModel):
    """Result of polling the provider for one task.

    ``status`` is what the admin UI branches on; ``job_status`` is the
    internal job status the provider state maps to.
    """
    status: PollStatus
    task_id: str
    job_status: JobStatus | None = None
    provider_status: str | None = None
    progress: int = 0
    message: str | None = None
    error: str | None = None

    # Only set when status == complete
    audio_id: str | None = None
    clip_id: str | None = None
    audio_url: str | None = None
    video_url: str | None = None
    image_url: str | None = None
    duration: float | None = None

    @property
    def success(self) -> bool:
        return self.status != PollStatus.ERROR

    def to_response(self) -> dict:
        payload = self.model_dump(mode="json", exclude_none=True)
        payload["success"] = self.success
        return payload


class TrackItem(BaseModel):
    """One generated track extracted from a provider payload."""
    clip_id: str | None = None
    audio_url: str | None = None
    video_url: str | None = None
    image_url: str | None = None
    duration: float = 180.0
    title: str | None = None


class SubmitResult(BaseModel):
    success: bool
    job_id: str
    task_id: str | None = None
    status: JobStatus
    message: str | None = None
