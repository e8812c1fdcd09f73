"""Generation job state transitions shared by the poller sweep and callbacks.

Terminal transitions are conditional UPDATEs: the row only changes when
it is not already in the target state, and the returned row count tells
the caller whether *it* performed the transition. Downstream side effects
hang off that flag, so a duplicate callback racing a poll cannot fire
them twice.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from musiclovely.config import get_settings
from musiclovely.models import GenerationJob, Song
from musiclovely.schemas.common import ACTIVE_JOB_STATUSES, JobStatus
from musiclovely.schemas.generation import TrackItem
from musiclovely.utils.helpers import short_id, utcnow
from musiclovely.utils.lyrics import lyrics_title
from musiclovely.utils.payloads import is_http_url

logger = logging.getLogger(__name__)

_OPEN_STATUSES = (JobStatus.PENDING.value, *ACTIVE_JOB_STATUSES)


def claim_submission(db: Session, job_id: str) -> bool:
    """Mark *job_id* as having a provider request in flight.

    Succeeds only for a job with no task id and no outstanding claim.
    """
    now = utcnow()
    claimed = (
        db.query(GenerationJob)
        .filter(
            GenerationJob.id == job_id,
            or_(GenerationJob.suno_task_id.is_(None), GenerationJob.suno_task_id == ""),
            GenerationJob.submitted_at.is_(None),
        )
        .update(
            {
                "submitted_at": now,
                "status": JobStatus.PROCESSING.value,
                "error_message": None,
                "updated_at": now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return claimed == 1


def record_task_id(db: Session, job: GenerationJob, task_id: str) -> None:
    job.suno_task_id = task_id
    job.status = JobStatus.PROCESSING.value
    job.progress_pct = 10
    job.error_message = None
    db.commit()


def reset_for_regeneration(job: GenerationJob, status: str = JobStatus.PENDING.value) -> None:
    """Clear the provider task and its artifacts so the job can be submitted again."""
    job.status = status
    job.progress_pct = 0
    job.suno_task_id = None
    job.suno_audio_id = None
    job.suno_audio_url = None
    job.suno_video_url = None
    job.suno_cover_url = None
    job.duration_sec = None
    job.error_message = None
    job.completed_at = None
    job.submitted_at = None


def record_progress(db: Session, job: GenerationJob, status: JobStatus, progress: int) -> bool:
    """Advance a non-terminal job's status / progress. Returns whether the row changed."""
    updated = (
        db.query(GenerationJob)
        .filter(
            GenerationJob.id == job.id,
            GenerationJob.status.in_(_OPEN_STATUSES),
        )
        .update(
            {"status": status.value, "progress_pct": progress, "updated_at": utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    db.refresh(job)
    return updated == 1


def fail_job(db: Session, job: GenerationJob, message: str, release_claim: bool = True) -> bool:
    """Mark *job* failed unless it already succeeded. Returns whether the row changed."""
    now = utcnow()
    values = {
        "status": JobStatus.FAILED.value,
        "progress_pct": 0,
        "error_message": message,
        "completed_at": now,
        "updated_at": now,
    }
    if release_claim:
        values["submitted_at"] = None
    updated = (
        db.query(GenerationJob)
        .filter(
            GenerationJob.id == job.id,
            GenerationJob.status != JobStatus.SUCCEEDED.value,
        )
        .update(values, synchronize_session=False)
    )
    db.commit()
    db.refresh(job)
    if updated:
        logger.warning("Job %s failed: %s", short_id(job.id), message)
    return updated == 1


def complete_job(
    db: Session,
    job: GenerationJob,
    tracks: list[TrackItem],
) -> tuple[bool, Song | None]:
    """Move *job* to succeeded and upsert one song per track.

    Returns ``(transitioned, first_song)``. ``transitioned`` is False when
    another caller already completed the job; nothing is written then.
    """
    if not tracks:
        raise ValueError("complete_job needs at least one track")

    now = utcnow()
    primary = next((t for t in tracks if is_http_url(t.audio_url)), tracks[0])
    updated = (
        db.query(GenerationJob)
        .filter(
            GenerationJob.id == job.id,
            GenerationJob.status != JobStatus.SUCCEEDED.value,
        )
        .update(
            {
                "status": JobStatus.SUCCEEDED.value,
                "progress_pct": 100,
                "suno_audio_id": primary.clip_id,
                "suno_audio_url": primary.audio_url,
                "suno_video_url": primary.video_url,
                "suno_cover_url": primary.image_url,
                "duration_sec": primary.duration,
                "error_message": None,
                "completed_at": now,
                "updated_at": now,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        db.refresh(job)
        logger.info("Job %s already succeeded, skipping duplicate completion", short_id(job.id))
        return False, None

    songs = _upsert_songs(db, job, tracks, now)
    db.commit()
    db.refresh(job)
    logger.info("Job %s succeeded with %d song(s)", short_id(job.id), len(songs))
    return True, songs[0]


def _upsert_songs(db: Session, job: GenerationJob, tracks: list[TrackItem], now) -> list[Song]:
    settings = get_settings()
    release_at = now + timedelta(hours=settings.SONG_RELEASE_DELAY_HOURS)

    songs: list[Song] = []
    for index, track in enumerate(tracks):
        variant = index + 1
        song = (
            db.query(Song)
            .filter(Song.job_id == job.id, Song.variant_number == variant)
            .first()
        )
        if song is None:
            song = Song(order_id=job.order_id, job_id=job.id, variant_number=variant)
            db.add(song)
        song.title = lyrics_title(job.gpt_lyrics, default=track.title or "Música Personalizada")
        song.audio_url = track.audio_url
        song.video_url = track.video_url
        song.cover_url = track.image_url
        song.duration_sec = track.duration
        song.suno_clip_id = track.clip_id or f"{job.suno_task_id}-{variant}"
        song.suno_task_id = job.suno_task_id
        song.status = "ready"
        song.release_at = release_at
        songs.append(song)
    db.flush()
    return songs
