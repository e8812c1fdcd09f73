"""Provider status vocabulary and result extraction.

Maps the provider's task statuses onto ``JobStatus`` plus a progress
percentage, and pulls generated tracks out of status / callback payloads.
Pure functions only; the poller and the callback receiver both build on
these so a poll and a callback for the same payload agree.
"""
from __future__ import annotations

from musiclovely.schemas.common import JobStatus
from musiclovely.schemas.generation import TrackItem
from musiclovely.utils.payloads import first_list, first_str, first_value, parse_progress, to_float

DEFAULT_DURATION = 180.0

# provider status -> (internal status, progress %)
STATUS_MAP: dict[str, tuple[JobStatus, int]] = {
    "PENDING": (JobStatus.PROCESSING, 10),
    "TEXT_SUCCESS": (JobStatus.TEXT_READY, 30),
    "FIRST_SUCCESS": (JobStatus.FIRST_READY, 60),
    "SUCCESS": (JobStatus.SUCCEEDED, 100),
    "COMPLETE": (JobStatus.SUCCEEDED, 100),
    "COMPLETED": (JobStatus.SUCCEEDED, 100),
}

FAILURE_STATUSES = frozenset({
    "FAILED",
    "ERROR",
    "CREATE_TASK_FAILED",
    "GENERATE_AUDIO_FAILED",
    "CALLBACK_EXCEPTION",
    "SENSITIVE_WORD_ERROR",
})

# Where result items live, newest payload shape first
ITEM_PATHS = (
    "data.response.sunoData",
    "data.response.data",
    "data.sunoData",
    "data.musics",
    "musics",
    "Musics",
    "data.data",
    "data.clips",
)

CLIP_ID_KEYS = ("id", "clipId", "musicId", "audioId")
AUDIO_URL_KEYS = ("audio_url", "audioUrl", "AudioUrl", "url", "stream_audio_url", "streamAudioUrl")
VIDEO_URL_KEYS = ("video_url", "videoUrl", "VideoUrl")
IMAGE_URL_KEYS = ("image_url", "imageUrl", "ImageUrl", "cover_url", "coverUrl")
DURATION_KEYS = ("duration", "Duration")
TITLE_KEYS = ("title", "Title")


def normalize_status(raw: str | None) -> str:
    return (raw or "").strip().upper()


def is_failure(raw_status: str | None) -> bool:
    return normalize_status(raw_status) in FAILURE_STATUSES


def map_status(raw_status: str | None, reported_progress=None) -> tuple[JobStatus, int]:
    """Translate a provider status into ``(JobStatus, progress)``.

    Unknown statuses are treated as still processing, using whatever
    progress the provider reported.
    """
    status = normalize_status(raw_status)
    if status in FAILURE_STATUSES:
        return JobStatus.FAILED, 0
    if status in STATUS_MAP:
        return STATUS_MAP[status]
    return JobStatus.PROCESSING, parse_progress(reported_progress)


def extract_items(payload: dict) -> list[dict]:
    return first_list(payload, *ITEM_PATHS)


def extract_track(item: dict) -> TrackItem:
    """Read one result item, trying each field's aliases in order."""
    return TrackItem(
        clip_id=first_str(item, *CLIP_ID_KEYS),
        audio_url=first_str(item, *AUDIO_URL_KEYS),
        video_url=first_str(item, *VIDEO_URL_KEYS),
        image_url=first_str(item, *IMAGE_URL_KEYS),
        duration=to_float(first_value(item, *DURATION_KEYS), DEFAULT_DURATION) or DEFAULT_DURATION,
        title=first_str(item, *TITLE_KEYS),
    )


def extract_tracks(payload: dict) -> list[TrackItem]:
    return [extract_track(item) for item in extract_items(payload)]


def extract_task_id(payload: dict) -> str | None:
    """Task id as returned by the generate endpoint or sent in a callback."""
    return first_str(
        payload,
        "data.task_id", "data.taskId", "data.jobId", "taskId", "task_id", "id", "data.id",
    )


def provider_message(payload: dict, default: str = "Unknown provider error") -> str:
    return (
        first_str(payload, "msg", "message", "data.errorMessage", "data.msg", "error")
        or default
    )
