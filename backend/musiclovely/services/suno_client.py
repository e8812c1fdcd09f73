"""Async client for the Suno audio-generation API (api.sunoapi.org).

Covers the three calls this service needs: submitting a generation,
querying a task's status, and requesting vocal/instrumental separation.
The status endpoint has moved between URL shapes over time, so
``query_status`` walks a list of candidates and retries each one.
"""
from __future__ import annotations

import logging

import httpx

from musiclovely.config import get_settings
from musiclovely.services.http_client_manager import get_http_client
from musiclovely.services.retry_handler import (
    AuthenticationError,
    ProviderError,
    RetryHandler,
)
from musiclovely.services.suno_status import (
    extract_task_id,
    is_failure,
    provider_message,
)
from musiclovely.utils.payloads import first_str

logger = logging.getLogger(__name__)

# Status endpoint shapes, tried in order
STATUS_PATHS = (
    "/api/v1/generate/record-info?taskId={task_id}",
    "/api/v1/generate/record-info?id={task_id}",
    "/api/v1/query?id={task_id}",
    "/api/v1/query?jobId={task_id}",
    "/api/v1/feed?id={task_id}",
)

NOT_RETRIED_ON_POLL = frozenset({404, 405})
GENERATE_PATH = "/api/v1/generate"
VOCAL_REMOVAL_PATH = "/api/v1/vocal-removal/generate"
SEPARATION_TYPE = "separate_vocal"


class SunoClient:
    """Thin wrapper over the provider's REST endpoints.

    Pass *client* to use a specific ``httpx.AsyncClient`` (tests hand in one
    backed by ``httpx.MockTransport``); otherwise the pooled ``suno`` client
    is used.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.SUNO_API_KEY
        self.base_url = (base_url or settings.SUNO_BASE_URL).rstrip("/")
        self.max_retries = max_retries if max_retries is not None else settings.POLL_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.POLL_RETRY_DELAY
        self._client = client

    @property
    def http(self) -> httpx.AsyncClient:
        return self._client or get_http_client("suno")

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise AuthenticationError("SUNO_API_KEY is not configured")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def status_urls(self, task_id: str) -> list[str]:
        return [self.base_url + path.format(task_id=task_id) for path in STATUS_PATHS]

    async def _get_json(self, url: str) -> dict:
        response = await self.http.get(url, headers=self._headers())
        response.raise_for_status()
        return _json_body(response)

    async def _post_json(self, url: str, body: dict) -> dict:
        response = await self.http.post(url, json=body, headers=self._headers())
        response.raise_for_status()
        return _json_body(response)

    # ── Status ─────────────────────────────────────────────────────────

    async def query_status(self, task_id: str) -> dict:
        """Return the raw status payload from the first endpoint that answers 200.

        Each candidate gets one call plus ``max_retries`` retries on any
        failure except 401/403 (raised) and 404/405; those two, or an
        unparseable body, move straight to the next candidate.
        """
        errors: list[str] = []
        for url in self.status_urls(task_id):
            handler = RetryHandler(
                f"suno status ({url.split('?')[0].removeprefix(self.base_url)})",
                max_attempts=1 + self.max_retries,
                delay=self.retry_delay,
                retry_on=_retry_status_poll,
            )
            try:
                payload = await handler.execute_with_retry(self._get_json, url)
            except AuthenticationError:
                raise
            except ProviderError as exc:
                logger.info("Status candidate failed for task %s: %s", task_id, exc)
                errors.append(str(exc))
                continue
            logger.debug("Status for task %s answered by %s", task_id, url)
            return payload

        raise ProviderError(
            f"No status endpoint answered for task {task_id}: " + "; ".join(errors)
        )

    # ── Generation ─────────────────────────────────────────────────────

    async def generate(self, payload: dict) -> str:
        """Submit a generation and return the provider task id.

        Not retried: a timed-out POST may still have created a task.
        """
        handler = RetryHandler("suno generate", max_attempts=1)
        data = await handler.execute_with_retry(
            self._post_json, self.base_url + GENERATE_PATH, payload,
        )

        code = data.get("code")
        status = str(data.get("status") or "").lower()
        if (code is not None and code not in (200, 0)) or status in ("failure", "error") or is_failure(status):
            raise ProviderError(
                f"Suno generate rejected the request: {provider_message(data)}",
                status_code=code if isinstance(code, int) else None,
                payload=data,
            )

        task_id = extract_task_id(data)
        if not task_id:
            raise ProviderError("Suno generate response has no task id", payload=data)
        return task_id

    # ── Stem separation ────────────────────────────────────────────────

    async def request_vocal_removal(self, task_id: str, audio_id: str, callback_url: str) -> str:
        """Request vocal/instrumental separation and return the separation task id."""
        body = {
            "taskId": task_id,
            "audioId": audio_id,
            "callBackUrl": callback_url,
            "type": SEPARATION_TYPE,
        }
        handler = RetryHandler("suno vocal-removal", max_attempts=1)
        data = await handler.execute_with_retry(
            self._post_json, self.base_url + VOCAL_REMOVAL_PATH, body,
        )

        code = data.get("code")
        if code != 200:
            raise ProviderError(
                f"Suno vocal-removal failed: {provider_message(data)}",
                status_code=code if isinstance(code, int) else None,
                payload=data,
            )

        separation_task_id = first_str(data, "data.taskId", "taskId", "data.id")
        if not separation_task_id:
            raise ProviderError("Suno vocal-removal response has no task id", payload=data)
        return separation_task_id


def _retry_status_poll(status: int) -> bool:
    return status not in NOT_RETRIED_ON_POLL


def _json_body(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError as exc:
        raise ProviderError(
            f"Invalid JSON from {response.request.url}", status_code=response.status_code,
        ) from exc
    if not isinstance(data, dict):
        raise ProviderError(f"Unexpected payload type from {response.request.url}")
    return data
