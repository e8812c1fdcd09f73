"""Periodic sweep over in-flight generation jobs.

Callbacks are the fast path; this sweep is the safety net for callbacks
that never arrive. It applies the same ``job_state`` transitions, so a
job completed here and by a late callback still fires downstream once.
"""
from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.orm import Session

from musiclovely.config import get_settings
from musiclovely.models import GenerationJob
from musiclovely.schemas.common import ACTIVE_JOB_STATUSES, JobStatus, PollStatus
from musiclovely.schemas.orders import PollSweepResult
from musiclovely.services import job_state
from musiclovely.services.downstream import DownstreamDispatcher
from musiclovely.services.media_storage import MediaMirror
from musiclovely.services.retry_handler import ProviderError
from musiclovely.services.status_poller import interpret_status_payload
from musiclovely.services.suno_client import SunoClient
from musiclovely.services.suno_status import extract_tracks
from musiclovely.utils.helpers import short_id

logger = logging.getLogger(__name__)

DispatchFn = Callable[[str], None]


def _enqueue_generation(job_id: str) -> None:
    from musiclovely.tasks.generation import submit_generation
    submit_generation.delay(job_id)


class PollSweep:
    def __init__(
        self,
        client: SunoClient | None = None,
        dispatcher: DownstreamDispatcher | None = None,
        dispatch: DispatchFn | None = None,
        mirror: MediaMirror | None = None,
    ):
        self.client = client or SunoClient()
        self.dispatcher = dispatcher or DownstreamDispatcher()
        self._dispatch = dispatch or _enqueue_generation
        self._mirror = mirror
        self.settings = get_settings()

    def find_jobs(self, db: Session) -> list[GenerationJob]:
        return (
            db.query(GenerationJob)
            .filter(
                GenerationJob.status.in_(ACTIVE_JOB_STATUSES),
                GenerationJob.suno_task_id.isnot(None),
                GenerationJob.suno_task_id != "",
            )
            .order_by(GenerationJob.updated_at.asc())
            .limit(self.settings.POLL_SWEEP_BATCH_LIMIT)
            .all()
        )

    async def run(self, db: Session) -> PollSweepResult:
        jobs = self.find_jobs(db)
        result = PollSweepResult(total=len(jobs))

        for job in jobs:
            try:
                outcome = await self._poll_job(db, job)
            except Exception:
                logger.exception("Poll sweep crashed on job %s", short_id(job.id))
                db.rollback()
                outcome = "still_processing"
            setattr(result, outcome, getattr(result, outcome) + 1)

        logger.info(
            "Poll sweep: %d job(s), %d completed, %d failed, %d retried, %d still processing",
            result.total, result.completed, result.failed, result.retried, result.still_processing,
        )
        return result

    async def _poll_job(self, db: Session, job: GenerationJob) -> str:
        task_id = job.suno_task_id
        try:
            payload = await self.client.query_status(task_id)
        except ProviderError as exc:
            logger.info("Job %s: status unavailable (%s)", short_id(job.id), exc)
            return "still_processing"

        poll = interpret_status_payload(task_id, payload)

        if poll.status == PollStatus.COMPLETE:
            tracks = extract_tracks(payload)
            if self.settings.MIRROR_MEDIA:
                if self._mirror is None:
                    self._mirror = MediaMirror()
                tracks = await self._mirror.mirror_tracks(job.id, tracks)
            transitioned, song = job_state.complete_job(db, job, tracks)
            if transitioned:
                self.dispatcher.on_generation_succeeded(db, job, song)
            return "completed"

        if poll.job_status == JobStatus.FAILED:
            return self._handle_failure(db, job, poll.error or "Generation failed at the provider")

        if poll.status == PollStatus.ERROR:
            return "still_processing"

        job_state.record_progress(db, job, poll.job_status or JobStatus.PROCESSING, poll.progress)
        return "still_processing"

    def _handle_failure(self, db: Session, job: GenerationJob, error: str) -> str:
        max_retries = self.settings.GENERATION_MAX_RETRIES
        if (job.retry_count or 0) >= max_retries:
            job_state.fail_job(
                db, job, f"Generation failed after {max_retries + 1} attempts: {error}",
            )
            return "failed"

        job.retry_count = (job.retry_count or 0) + 1
        logger.info(
            "Job %s failed at the provider (%s), retry %d/%d",
            short_id(job.id), error, job.retry_count, max_retries,
        )
        job_state.reset_for_regeneration(job, status=JobStatus.PENDING.value)
        db.commit()
        try:
            self._dispatch(job.id)
        except Exception as exc:
            logger.exception("Could not queue retry for job %s", short_id(job.id))
            job_state.fail_job(db, job, f"Could not queue retry: {exc}")
            return "failed"
        return "retried"
