"""Provider callback handling for generation and stem-separation tasks.

Callbacks apply exactly the transitions the poller sweep applies (via
``job_state``), so whichever of the two arrives first wins and the other
becomes a no-op.
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from musiclovely.config import get_settings
from musiclovely.models import GenerationJob, Song, StemSeparation
from musiclovely.schemas.common import JobStatus, SeparationStatus
from musiclovely.services import job_state
from musiclovely.services.downstream import DownstreamDispatcher
from musiclovely.services.errors import BadRequestError, NotFoundError
from musiclovely.services.media_storage import MediaMirror
from musiclovely.services.suno_status import (
    extract_task_id,
    extract_tracks,
    is_failure,
    provider_message,
)
from musiclovely.utils.helpers import short_id, utcnow
from musiclovely.utils.payloads import first_str, first_value, is_http_url

logger = logging.getLogger(__name__)

COMPLETE_TYPES = frozenset({"complete", "completed", "success"})
FAILURE_TYPES = frozenset({"error", "failed", "failure"})
INTERMEDIATE_TYPES = {
    "text": (JobStatus.TEXT_READY, 30),
    "first": (JobStatus.FIRST_READY, 60),
}

VOCAL_KEYS = ("vocalUrl", "vocal_url", "vocals_url", "vocals")
INSTRUMENTAL_KEYS = ("instrumentalUrl", "instrumental_url", "instrumental")


def callback_type(payload: dict) -> str:
    return (first_str(payload, "data.callbackType", "callbackType", "status", "data.status") or "").lower()


def _provider_code_failed(payload: dict) -> bool:
    code = payload.get("code")
    return code is not None and code != 200


class CallbackService:
    def __init__(
        self,
        dispatcher: DownstreamDispatcher | None = None,
        mirror: MediaMirror | None = None,
    ):
        self.dispatcher = dispatcher or DownstreamDispatcher()
        self._mirror = mirror
        self.settings = get_settings()

    @property
    def mirror(self) -> MediaMirror:
        if self._mirror is None:
            self._mirror = MediaMirror()
        return self._mirror

    # ── Generation ─────────────────────────────────────────────────────

    async def handle_generation(self, db: Session, payload: dict) -> dict:
        task_id = extract_task_id(payload)
        if not task_id:
            raise BadRequestError("task_id not found in callback payload")

        job = db.query(GenerationJob).filter(GenerationJob.suno_task_id == task_id).first()
        if not job:
            raise NotFoundError(f"No job for task {task_id}")

        kind = callback_type(payload)
        logger.info("Generation callback for job %s: type=%r", short_id(job.id), kind)

        if kind in FAILURE_TYPES or is_failure(kind) or _provider_code_failed(payload):
            message = provider_message(payload, "Provider reported a generation failure")
            changed = job_state.fail_job(db, job, message, release_claim=False)
            return {"success": True, "job_id": job.id, "status": JobStatus.FAILED.value, "updated": changed}

        if kind in INTERMEDIATE_TYPES:
            status, progress = INTERMEDIATE_TYPES[kind]
            changed = job_state.record_progress(db, job, status, progress)
            return {"success": True, "job_id": job.id, "status": status.value, "updated": changed}

        if kind not in COMPLETE_TYPES:
            return {"success": True, "ignored": True, "reason": f"Callback type '{kind}' is not handled"}

        tracks = extract_tracks(payload)
        if not tracks:
            return {"success": True, "ignored": True, "reason": "Complete callback without songs"}

        if self.settings.MIRROR_MEDIA:
            tracks = await self.mirror.mirror_tracks(job.id, tracks)

        transitioned, song = job_state.complete_job(db, job, tracks)
        if not transitioned:
            return {"success": True, "duplicate": True, "job_id": job.id}

        self.dispatcher.on_generation_succeeded(db, job, song)
        return {
            "success": True,
            "job_id": job.id,
            "status": JobStatus.SUCCEEDED.value,
            "songs": len(tracks),
        }

    # ── Stem separation ────────────────────────────────────────────────

    @staticmethod
    def _find_separation(
        db: Session,
        separation_id: str | None,
        task_id: str | None,
        song_id: str | None,
    ) -> StemSeparation | None:
        if separation_id:
            row = db.query(StemSeparation).filter(StemSeparation.id == separation_id).first()
            if row:
                return row
        if task_id:
            row = (
                db.query(StemSeparation)
                .filter(StemSeparation.separation_task_id == task_id)
                .first()
            )
            if row:
                return row
        if song_id:
            return (
                db.query(StemSeparation)
                .filter(StemSeparation.song_id == song_id)
                .order_by(StemSeparation.created_at.desc())
                .first()
            )
        return None

    @staticmethod
    def _mark_separation(db: Session, separation: StemSeparation, status: SeparationStatus, error: str | None = None) -> bool:
        """Conditional update; a completed separation is never moved back."""
        values = {"status": status.value, "updated_at": utcnow()}
        if error is not None:
            values["error_message"] = error
        updated = (
            db.query(StemSeparation)
            .filter(
                StemSeparation.id == separation.id,
                StemSeparation.status != SeparationStatus.COMPLETED.value,
            )
            .update(values, synchronize_session=False)
        )
        db.commit()
        db.refresh(separation)
        return updated == 1

    async def handle_stems(
        self,
        db: Session,
        payload: dict,
        song_id: str | None = None,
        separation_id: str | None = None,
    ) -> dict:
        separation = self._find_separation(db, separation_id, extract_task_id(payload), song_id)
        if not separation:
            logger.warning(
                "Stems callback for unknown separation (song=%s, separation=%s)", song_id, separation_id,
            )
            return {"received": True, "error": "Separation not found"}

        try:
            return await self._apply_stems(db, separation, payload)
        except Exception as exc:
            logger.exception("Stems callback failed for separation %s", short_id(separation.id))
            db.rollback()
            self._mark_separation(db, separation, SeparationStatus.FAILED, str(exc))
            return {"received": True, "separation_id": separation.id, "error": str(exc)}

    async def _apply_stems(self, db: Session, separation: StemSeparation, payload: dict) -> dict:
        if _provider_code_failed(payload):
            message = provider_message(payload, "Provider reported a separation failure")
            self._mark_separation(db, separation, SeparationStatus.FAILED, message)
            return {"received": True, "separation_id": separation.id, "status": SeparationStatus.FAILED.value}

        kind = callback_type(payload)
        if kind in FAILURE_TYPES:
            message = provider_message(payload, "Provider reported a separation failure")
            self._mark_separation(db, separation, SeparationStatus.FAILED, message)
            return {"received": True, "separation_id": separation.id, "status": SeparationStatus.FAILED.value}

        if kind and kind not in COMPLETE_TYPES:
            self._mark_separation(db, separation, SeparationStatus.PROCESSING)
            return {"received": True, "separation_id": separation.id, "status": SeparationStatus.PROCESSING.value}

        info = first_value(payload, "data.response", "data.vocal_removal_info", "data.vocalRemovalInfo")
        info = info if isinstance(info, dict) else {}
        vocals_url = first_str(info, *VOCAL_KEYS)
        instrumental_url = first_str(info, *INSTRUMENTAL_KEYS)
        if not is_http_url(vocals_url) or not is_http_url(instrumental_url):
            self._mark_separation(
                db, separation, SeparationStatus.FAILED, "Stem URLs missing or invalid in callback",
            )
            return {"received": True, "separation_id": separation.id, "status": SeparationStatus.FAILED.value}

        if self.settings.MIRROR_MEDIA:
            vocals_url, instrumental_url = await self.mirror.mirror_stems(
                separation.song_id, vocals_url, instrumental_url,
            )

        now = utcnow()
        updated = (
            db.query(StemSeparation)
            .filter(
                StemSeparation.id == separation.id,
                StemSeparation.status != SeparationStatus.COMPLETED.value,
            )
            .update(
                {
                    "status": SeparationStatus.COMPLETED.value,
                    "vocals_url": vocals_url,
                    "instrumental_url": instrumental_url,
                    "error_message": None,
                    "completed_at": now,
                    "updated_at": now,
                },
                synchronize_session=False,
            )
        )
        if updated != 1:
            db.rollback()
            return {"received": True, "separation_id": separation.id, "duplicate": True}

        song = db.query(Song).filter(Song.id == separation.song_id).first()
        if song is not None:
            song.vocals_url = vocals_url
            song.instrumental_url = instrumental_url
            song.stems_separated_at = now
        db.commit()
        db.refresh(separation)
        logger.info("Stems stored for song %s", short_id(separation.song_id))
        return {
            "received": True,
            "separation_id": separation.id,
            "status": SeparationStatus.COMPLETED.value,
            "vocals_url": vocals_url,
            "instrumental_url": instrumental_url,
        }
