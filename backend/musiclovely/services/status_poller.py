"""Status poller — turns a provider task id into a ``PollResult``.

Never raises for provider trouble: every outcome comes back as a result
with ``status`` complete / processing / error, so the admin UI can keep
polling through transient failures.
"""
from __future__ import annotations

import logging

from musiclovely.schemas.common import JobStatus, PollStatus
from musiclovely.schemas.generation import PollResult
from musiclovely.services.retry_handler import ProviderError
from musiclovely.services.suno_client import SunoClient
from musiclovely.services.suno_status import (
    extract_tracks,
    map_status,
    normalize_status,
    provider_message,
)
from musiclovely.utils.payloads import first_str, first_value

logger = logging.getLogger(__name__)


def interpret_status_payload(task_id: str, payload: dict) -> PollResult:
    """Interpret one status payload.

    Order matters: provider errors and failed statuses are resolved before
    the success branch, so a failed task can never be reported complete.
    """
    raw_status = first_str(payload, "data.status", "status") or ""
    provider_status = normalize_status(raw_status) or None
    job_status, progress = map_status(raw_status, first_value(payload, "data.progress", "progress"))

    code = payload.get("code")
    if code is not None and code != 200 and provider_status != "SUCCESS":
        return PollResult(
            status=PollStatus.ERROR,
            task_id=task_id,
            job_status=JobStatus.FAILED,
            provider_status=provider_status,
            error=provider_message(payload),
        )

    if job_status == JobStatus.FAILED:
        return PollResult(
            status=PollStatus.ERROR,
            task_id=task_id,
            job_status=JobStatus.FAILED,
            provider_status=provider_status,
            error=first_str(payload, "data.errorMessage", "msg", "message")
            or "Generation failed at the provider",
        )

    if job_status == JobStatus.SUCCEEDED:
        tracks = extract_tracks(payload)
        if not tracks:
            return PollResult(
                status=PollStatus.PROCESSING,
                task_id=task_id,
                job_status=JobStatus.PROCESSING,
                provider_status=provider_status,
                progress=90,
                message="Provider reports success, waiting for songs",
            )
        first = tracks[0]
        return PollResult(
            status=PollStatus.COMPLETE,
            task_id=task_id,
            job_status=JobStatus.SUCCEEDED,
            provider_status=provider_status,
            progress=100,
            audio_id=first.clip_id,
            clip_id=first.clip_id,
            audio_url=first.audio_url,
            video_url=first.video_url,
            image_url=first.image_url,
            duration=first.duration,
        )

    return PollResult(
        status=PollStatus.PROCESSING,
        task_id=task_id,
        job_status=job_status,
        provider_status=provider_status,
        progress=progress,
        message=f"Provider status: {provider_status or 'unknown'}",
    )


class StatusPoller:
    def __init__(self, client: SunoClient | None = None):
        self.client = client or SunoClient()

    async def poll(self, task_id: str) -> PollResult:
        if not task_id or not task_id.strip():
            return PollResult(status=PollStatus.ERROR, task_id="", error="task_id is required")
        task_id = task_id.strip()

        try:
            payload = await self.client.query_status(task_id)
        except ProviderError as exc:
            logger.warning("Polling task %s failed: %s", task_id, exc)
            return PollResult(status=PollStatus.ERROR, task_id=task_id, error=str(exc))

        result = interpret_status_payload(task_id, payload)
        logger.info(
            "Polled task %s: %s (%s, %d%%)",
            task_id, result.status.value, result.provider_status, result.progress,
        )
        return result
