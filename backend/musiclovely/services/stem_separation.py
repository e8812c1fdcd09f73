"""Stem separation requests — the nested sub-job of a finished song."""
from __future__ import annotations

import logging
from urllib.parse import urlencode

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from musiclovely.config import get_settings
from musiclovely.models import GenerationJob, Song, StemSeparation
from musiclovely.schemas.common import SeparationStatus
from musiclovely.schemas.stems import SeparationOutcome, SeparationResponse
from musiclovely.services.errors import BadRequestError, NotFoundError
from musiclovely.services.retry_handler import ProviderError
from musiclovely.services.suno_client import SEPARATION_TYPE, SunoClient
from musiclovely.utils.helpers import short_id, utcnow

logger = logging.getLogger(__name__)

_IN_FLIGHT = (SeparationStatus.PENDING.value, SeparationStatus.PROCESSING.value)


def _outcome(separation: StemSeparation, existing: bool, message: str | None = None) -> SeparationOutcome:
    status = SeparationStatus(separation.status)
    return SeparationOutcome(
        success=status != SeparationStatus.FAILED,
        status=status,
        separation=SeparationResponse.model_validate(separation),
        existing=existing,
        message=message,
    )


class StemSeparationService:
    def __init__(self, client: SunoClient | None = None):
        self.client = client or SunoClient()
        self.settings = get_settings()

    @staticmethod
    def find_existing(db: Session, song_id: str) -> StemSeparation | None:
        """A completed separation with both stems, else one still in flight."""
        completed = (
            db.query(StemSeparation)
            .filter(
                StemSeparation.song_id == song_id,
                StemSeparation.status == SeparationStatus.COMPLETED.value,
                StemSeparation.vocals_url.isnot(None),
                StemSeparation.instrumental_url.isnot(None),
            )
            .order_by(StemSeparation.completed_at.desc())
            .first()
        )
        if completed:
            return completed
        return (
            db.query(StemSeparation)
            .filter(
                StemSeparation.song_id == song_id,
                StemSeparation.status.in_(_IN_FLIGHT),
            )
            .order_by(StemSeparation.created_at.desc())
            .first()
        )

    @staticmethod
    def resolve_source(db: Session, song: Song) -> tuple[str | None, str | None]:
        """Provider task id and audio id for *song*, falling back to its job."""
        task_id = song.suno_task_id
        audio_id = song.suno_clip_id
        if (not task_id or not audio_id) and song.job_id:
            job = db.query(GenerationJob).filter(GenerationJob.id == song.job_id).first()
            if job:
                task_id = task_id or job.suno_task_id
                audio_id = audio_id or job.suno_audio_id
        return task_id, audio_id

    def callback_url(self, song_id: str, separation_id: str) -> str:
        query = urlencode({"song_id": song_id, "separation_id": separation_id})
        return f"{self.settings.suno_stems_callback_url}?{query}"

    async def request(self, db: Session, song_id: str) -> SeparationOutcome:
        song = db.query(Song).filter(Song.id == song_id).first()
        if not song:
            raise NotFoundError("Song not found")

        existing = self.find_existing(db, song.id)
        if existing:
            logger.info(
                "Reusing %s separation %s for song %s",
                existing.status, short_id(existing.id), short_id(song.id),
            )
            return _outcome(existing, existing=True)

        task_id, audio_id = self.resolve_source(db, song)
        if not task_id or not audio_id:
            raise BadRequestError("Song has no provider task id / audio id to separate")

        separation = StemSeparation(
            song_id=song.id,
            generation_task_id=task_id,
            audio_id=audio_id,
            separation_type=SEPARATION_TYPE,
            status=SeparationStatus.PENDING.value,
        )
        db.add(separation)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request created the in-flight row first
            db.rollback()
            existing = self.find_existing(db, song.id)
            if existing is None:
                raise
            return _outcome(existing, existing=True)
        db.refresh(separation)

        try:
            separation_task_id = await self.client.request_vocal_removal(
                task_id, audio_id, self.callback_url(song.id, separation.id),
            )
        except ProviderError as exc:
            logger.warning("Separation request for song %s failed: %s", short_id(song.id), exc)
            separation.status = SeparationStatus.FAILED.value
            separation.error_message = str(exc)
            separation.updated_at = utcnow()
            db.commit()
            return _outcome(separation, existing=False, message=str(exc))

        separation.separation_task_id = separation_task_id
        separation.status = SeparationStatus.PROCESSING.value
        separation.updated_at = utcnow()
        db.commit()
        logger.info(
            "Separation %s requested for song %s (provider task %s)",
            short_id(separation.id), short_id(song.id), separation_task_id,
        )
        return _outcome(separation, existing=False, message="Separation requested")

    async def get_or_create(
        self,
        db: Session,
        song_id: str | None = None,
        audio_id: str | None = None,
    ) -> SeparationOutcome:
        if not song_id and not audio_id:
            raise BadRequestError("song_id or audio_id is required")
        if not song_id:
            song = db.query(Song).filter(Song.suno_clip_id == audio_id).first()
            if not song:
                raise NotFoundError("No song for that audio_id")
            song_id = song.id
        return await self.request(db, song_id)
