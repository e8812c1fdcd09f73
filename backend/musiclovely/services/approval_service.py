"""Lyrics approval state machine and its handoff to audio generation.

    pending ──approve──▶ approved ──(generation queued)──▶ job processing
       ▲                    │
       └─────unapprove──────┘   (job reset to pending, task id cleared)

Approval only queues generation; the provider call runs on a Celery
worker and writes its own errors back onto the job.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable

from sqlalchemy.orm import Session

from musiclovely.config import get_settings
from musiclovely.models import GenerationJob, LyricsApproval, Song
from musiclovely.schemas.approval import ApprovalResult
from musiclovely.schemas.common import ApprovalStatus, JobStatus, SongStatus
from musiclovely.services import job_state
from musiclovely.services.audit import log_admin_action
from musiclovely.services.errors import InvalidStateError, NotFoundError
from musiclovely.utils.helpers import as_utc, short_id, utcnow

logger = logging.getLogger(__name__)

DispatchFn = Callable[[str], None]


def _enqueue_generation(job_id: str) -> None:
    from musiclovely.tasks.generation import submit_generation
    submit_generation.delay(job_id)


def needs_forced_regeneration(approval: LyricsApproval, job: GenerationJob) -> bool:
    """A pending job, or an approval edited after the job last changed,
    means any task id on the job belongs to stale lyrics."""
    if job.status == JobStatus.PENDING.value:
        return True
    approval_ts = as_utc(approval.updated_at)
    job_ts = as_utc(job.updated_at)
    return bool(approval_ts and job_ts and approval_ts > job_ts)


class ApprovalService:
    def __init__(self, dispatch: DispatchFn | None = None):
        self._dispatch = dispatch or _enqueue_generation
        self.settings = get_settings()

    @staticmethod
    def _load(db: Session, approval_id: str) -> tuple[LyricsApproval, GenerationJob]:
        approval = db.query(LyricsApproval).filter(LyricsApproval.id == approval_id).first()
        if not approval:
            raise NotFoundError("Approval not found")
        job = db.query(GenerationJob).filter(GenerationJob.id == approval.job_id).first()
        if not job:
            raise NotFoundError("Job not found for approval")
        return approval, job

    def approve(self, db: Session, approval_id: str) -> ApprovalResult:
        approval, job = self._load(db, approval_id)
        if approval.status != ApprovalStatus.PENDING.value:
            raise InvalidStateError(f"Approval is already {approval.status}")

        # Both inputs are read before either row is touched
        force = needs_forced_regeneration(approval, job)
        has_task = bool((job.suno_task_id or "").strip())
        in_flight = has_task or job.submitted_at is not None
        should_dispatch = force or not in_flight

        now = utcnow()
        approval.status = ApprovalStatus.APPROVED.value
        approval.approved_at = now
        approval.updated_at = now

        if approval.lyrics and not job.gpt_lyrics:
            job.gpt_lyrics = approval.lyrics

        if should_dispatch:
            if force and in_flight:
                logger.info(
                    "Forcing regeneration for job %s, clearing stale task %s",
                    short_id(job.id), job.suno_task_id,
                )
            job_state.reset_for_regeneration(job, status=JobStatus.PROCESSING.value)
        else:
            logger.info(
                "Job %s already has a generation in flight (task %s), not requesting again",
                short_id(job.id), job.suno_task_id,
            )

        log_admin_action(
            db,
            "lyrics_approved",
            "lyrics_approvals",
            approval.id,
            {
                "job_id": job.id,
                "order_id": approval.order_id,
                "forced_regeneration": force,
                "generation_dispatched": should_dispatch,
            },
        )
        db.commit()

        dispatched = False
        if should_dispatch:
            try:
                self._dispatch(job.id)
                dispatched = True
            except Exception as exc:
                logger.exception("Could not queue generation for job %s", short_id(job.id))
                job_state.fail_job(db, job, f"Could not queue generation: {exc}")

        if dispatched:
            message = "Lyrics approved, generation queued"
        elif should_dispatch:
            message = "Lyrics approved, but generation could not be queued"
        else:
            message = "Lyrics approved"
        return ApprovalResult(
            message=message,
            job_id=job.id,
            approval_id=approval.id,
            generation_dispatched=dispatched,
            forced_regeneration=force,
        )

    def unapprove(self, db: Session, approval_id: str) -> ApprovalResult:
        approval, job = self._load(db, approval_id)
        if approval.status != ApprovalStatus.APPROVED.value:
            raise InvalidStateError(f"Approval is {approval.status}, not approved")

        now = utcnow()
        approval.status = ApprovalStatus.PENDING.value
        approval.approved_at = None
        approval.expires_at = now + timedelta(hours=self.settings.APPROVAL_EXPIRY_HOURS)
        approval.updated_at = now

        job_state.reset_for_regeneration(job, status=JobStatus.PENDING.value)

        removed = (
            db.query(Song)
            .filter(
                Song.job_id == job.id,
                Song.status == SongStatus.READY.value,
                Song.released_at.is_(None),
            )
            .delete(synchronize_session=False)
        )

        log_admin_action(
            db,
            "lyrics_unapproved",
            "lyrics_approvals",
            approval.id,
            {"job_id": job.id, "order_id": approval.order_id, "songs_removed": removed},
        )
        db.commit()
        logger.info(
            "Approval %s reverted to pending; job %s reset, %d unreleased song(s) removed",
            short_id(approval.id), short_id(job.id), removed,
        )
        return ApprovalResult(
            message="Lyrics unapproved, job reset to pending",
            job_id=job.id,
            approval_id=approval.id,
        )

    def reject(self, db: Session, approval_id: str, reason: str | None = None) -> ApprovalResult:
        approval, job = self._load(db, approval_id)
        if approval.status != ApprovalStatus.PENDING.value:
            raise InvalidStateError(f"Approval is already {approval.status}")

        now = utcnow()
        approval.status = ApprovalStatus.REJECTED.value
        approval.rejected_at = now
        approval.rejection_reason = reason
        approval.updated_at = now
        log_admin_action(
            db,
            "lyrics_rejected",
            "lyrics_approvals",
            approval.id,
            {"job_id": job.id, "reason": reason},
        )
        db.commit()
        return ApprovalResult(
            message="Lyrics rejected",
            job_id=job.id,
            approval_id=approval.id,
        )
