"""Resend transactional email client."""
from __future__ import annotations

import logging

import httpx

from musiclovely.config import get_settings
from musiclovely.services.http_client_manager import get_http_client
from musiclovely.services.retry_handler import AuthenticationError, ProviderError, RetryHandler

logger = logging.getLogger(__name__)


class ResendClient:
    def __init__(
        self,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_attempts: int = 3,
        delay: float = 1.0,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.api_url = settings.RESEND_API_URL
        self.sender = f"{settings.RESEND_FROM_NAME} <{settings.RESEND_FROM_EMAIL}>"
        self.reply_to = settings.RESEND_REPLY_TO
        self._client = client
        self.max_attempts = max_attempts
        self.delay = delay

    @property
    def http(self) -> httpx.AsyncClient:
        return self._client or get_http_client("resend")

    async def _post(self, body: dict, idempotency_key: str | None = None) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        response = await self.http.post(self.api_url, json=body, headers=headers)
        response.raise_for_status()
        return response

    async def send(self, to: str, subject: str, html: str, idempotency_key: str | None = None) -> str:
        """Send one email and return the Resend message id.

        Retries reuse *idempotency_key* so Resend drops duplicates of a send
        that timed out after being accepted.
        """
        if not self.api_key:
            raise AuthenticationError("RESEND_API_KEY is not configured")

        body = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": html,
            "reply_to": self.reply_to,
            "headers": {"X-Entity-Ref-ID": "noreply"},
        }
        handler = RetryHandler("resend", max_attempts=self.max_attempts, delay=self.delay, backoff=2.0)
        response = await handler.execute_with_retry(self._post, body, idempotency_key)
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("Invalid JSON from Resend") from exc
        email_id = data.get("id") if isinstance(data, dict) else None
        if not email_id:
            raise ProviderError("Resend response has no email id", payload=data)
        logger.info("Email %s sent to %s (%s)", email_id, to, subject)
        return email_id
