"""Pooled ``httpx.AsyncClient`` instances for the outbound providers.

``suno``, ``resend`` and ``media`` each get one client whose timeout,
pool size and redirect policy come from settings. A client is bound to
the event loop that created it; Celery tasks run each coroutine in a
fresh loop, so the client is rebuilt whenever the running loop changes.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from musiclovely.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientProfile:
    timeout: httpx.Timeout
    limits: httpx.Limits
    follow_redirects: bool = False


def client_profile(provider: str) -> ClientProfile:
    """Build the connection profile for *provider* from current settings."""
    settings = get_settings()
    read_timeouts = {
        "suno": settings.SUNO_TIMEOUT_SECONDS,
        "resend": settings.RESEND_TIMEOUT_SECONDS,
        "media": settings.MEDIA_TIMEOUT_SECONDS,
    }
    if provider not in read_timeouts:
        raise ValueError(f"Unknown HTTP provider: {provider!r}")
    return ClientProfile(
        timeout=httpx.Timeout(read_timeouts[provider], connect=settings.HTTP_CONNECT_TIMEOUT_SECONDS),
        limits=httpx.Limits(
            max_connections=settings.HTTP_MAX_CONNECTIONS,
            max_keepalive_connections=settings.HTTP_MAX_KEEPALIVE,
            keepalive_expiry=60,
        ),
        # provider CDNs redirect audio downloads to signed URLs
        follow_redirects=provider == "media",
    )


_clients: dict[str, tuple[int, httpx.AsyncClient]] = {}


def _current_loop_id() -> int:
    try:
        return id(asyncio.get_running_loop())
    except RuntimeError:
        return 0


def get_http_client(provider: str) -> httpx.AsyncClient:
    """Return the pooled client for *provider*, rebuilding it for a new event loop."""
    loop_id = _current_loop_id()
    cached = _clients.get(provider)
    if cached is not None:
        cached_loop, client = cached
        if cached_loop == loop_id and not client.is_closed:
            return client

    profile = client_profile(provider)
    client = httpx.AsyncClient(
        timeout=profile.timeout,
        limits=profile.limits,
        follow_redirects=profile.follow_redirects,
    )
    _clients[provider] = (loop_id, client)
    logger.debug("Opened %s HTTP client (read timeout %.0fs)", provider, profile.timeout.read)
    return client


async def close_all_clients() -> None:
    """Close every pooled client; called on API shutdown and after each Celery task."""
    for name, (_, client) in list(_clients.items()):
        if client.is_closed:
            continue
        try:
            await client.aclose()
        except (httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Error closing %s HTTP client: %s", name, exc)
    _clients.clear()
    logger.info("HTTP clients closed")
