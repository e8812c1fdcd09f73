"""Submits a job's approved lyrics to the audio-generation provider."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from musiclovely.config import get_settings
from musiclovely.models import GenerationJob, LyricsApproval, Quiz
from musiclovely.schemas.common import ACTIVE_JOB_STATUSES, ApprovalStatus, JobStatus
from musiclovely.schemas.generation import SubmitResult
from musiclovely.services import job_state
from musiclovely.services.errors import BadRequestError, ConflictError, NotFoundError
from musiclovely.services.suno_client import SunoClient
from musiclovely.utils.helpers import short_id
from musiclovely.utils.lyrics import (
    MAX_PROMPT_LENGTH,
    build_style,
    clean_lyrics,
    lyrics_text,
    lyrics_title,
    vocal_gender,
)

logger = logging.getLogger(__name__)


class GenerationService:
    def __init__(self, client: SunoClient | None = None):
        self.client = client or SunoClient()
        self.settings = get_settings()

    # ── Lookups ────────────────────────────────────────────────────────

    @staticmethod
    def _approval_for(db: Session, job: GenerationJob) -> LyricsApproval | None:
        """Most recent approval for the job, preferring one with a voice choice."""
        approvals = (
            db.query(LyricsApproval)
            .filter(LyricsApproval.job_id == job.id)
            .order_by(LyricsApproval.updated_at.desc())
            .all()
        )
        if not approvals:
            approvals = (
                db.query(LyricsApproval)
                .filter(LyricsApproval.order_id == job.order_id)
                .order_by(LyricsApproval.updated_at.desc())
                .all()
            )
        with_voice = [a for a in approvals if (a.voice or "").upper() in ("M", "F", "S")]
        if with_voice:
            return with_voice[0]
        return approvals[0] if approvals else None

    @staticmethod
    def _conflicting_job(db: Session, job: GenerationJob) -> GenerationJob | None:
        return (
            db.query(GenerationJob)
            .filter(
                GenerationJob.order_id == job.order_id,
                GenerationJob.id != job.id,
                GenerationJob.status.in_(ACTIVE_JOB_STATUSES),
                GenerationJob.suno_task_id.isnot(None),
                GenerationJob.suno_task_id != "",
            )
            .first()
        )

    # ── Payload ────────────────────────────────────────────────────────

    def build_payload(
        self,
        job: GenerationJob,
        quiz: Quiz | None,
        approval: LyricsApproval | None,
    ) -> dict:
        lyrics = job.gpt_lyrics
        if approval is not None and approval.status == ApprovalStatus.APPROVED.value and lyrics_text(approval.lyrics):
            lyrics = approval.lyrics

        prompt = clean_lyrics(lyrics_text(lyrics))
        if not prompt:
            raise BadRequestError("Job has no lyrics to generate from")
        if len(prompt) > MAX_PROMPT_LENGTH:
            raise BadRequestError(
                f"Lyrics too long ({len(prompt)} chars, max {MAX_PROMPT_LENGTH})"
            )

        payload = {
            "title": lyrics_title(lyrics, default=lyrics_title(job.gpt_lyrics)),
            "style": build_style(quiz.style if quiz else None, self.settings.SUNO_STYLE_SUFFIX),
            "prompt": prompt,
            "customMode": True,
            "instrumental": False,
            "model": self.settings.SUNO_MODEL,
            "callBackUrl": self.settings.suno_callback_url,
        }
        gender = vocal_gender(
            approval.voice if approval else None,
            quiz.vocal_gender if quiz else None,
        )
        if gender:
            payload["vocalGender"] = gender
        return payload

    # ── Submission ─────────────────────────────────────────────────────

    async def submit(self, db: Session, job_id: str) -> SubmitResult:
        """Claim *job_id* and submit it to the provider.

        Raises ``ConflictError`` when the job (or a sibling job of the same
        order) already has a request in flight. Any other failure is
        written onto the job before it propagates.
        """
        job = db.query(GenerationJob).filter(GenerationJob.id == job_id).first()
        if not job:
            raise NotFoundError("Job not found")

        if (job.suno_task_id or "").strip():
            raise ConflictError(
                f"Job {short_id(job.id)} already has provider task {job.suno_task_id}"
            )

        conflicting = self._conflicting_job(db, job)
        if conflicting:
            raise ConflictError(
                f"Order already has a generation in flight (job {short_id(conflicting.id)})"
            )

        if not job_state.claim_submission(db, job.id):
            raise ConflictError(f"Job {short_id(job.id)} is already being submitted")
        db.refresh(job)

        try:
            quiz = None
            if job.quiz_id:
                quiz = db.query(Quiz).filter(Quiz.id == job.quiz_id).first()
            approval = self._approval_for(db, job)
            payload = self.build_payload(job, quiz, approval)

            logger.info(
                "Submitting job %s to provider (style=%r, vocalGender=%s, %d chars)",
                short_id(job.id), payload["style"], payload.get("vocalGender"), len(payload["prompt"]),
            )
            task_id = await self.client.generate(payload)
        except Exception as exc:
            job_state.fail_job(db, job, f"Generation request failed: {exc}")
            raise

        job_state.record_task_id(db, job, task_id)
        logger.info("Job %s submitted, provider task %s", short_id(job.id), task_id)
        return SubmitResult(
            success=True,
            job_id=job.id,
            task_id=task_id,
            status=JobStatus.PROCESSING,
            message="Generation submitted",
        )
