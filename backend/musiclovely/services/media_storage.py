"""Download, validate and store provider media locally.

Provider-hosted URLs expire, so when ``MIRROR_MEDIA`` is enabled finished
tracks and stems are copied under ``MEDIA_DIR`` and served from ``/media``.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx

from musiclovely.config import get_settings
from musiclovely.schemas.generation import TrackItem
from musiclovely.services.http_client_manager import get_http_client
from musiclovely.services.retry_handler import ProviderError, RetryHandler
from musiclovely.utils.helpers import short_id
from musiclovely.utils.payloads import is_http_url

logger = logging.getLogger(__name__)

CONTENT_LENGTH_TOLERANCE = 0.05


class MediaValidationError(ProviderError):
    pass


class MediaDownloader:
    """Fetches audio with retries (1s, 2s, 4s) and size / length checks."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        max_attempts: int = 4,
        delay: float = 1.0,
        min_bytes: int | None = None,
        max_bytes: int | None = None,
    ):
        settings = get_settings()
        self._client = client
        self.max_attempts = max_attempts
        self.delay = delay
        self.min_bytes = min_bytes if min_bytes is not None else settings.MEDIA_MIN_BYTES
        self.max_bytes = max_bytes if max_bytes is not None else settings.MEDIA_MAX_BYTES

    @property
    def http(self) -> httpx.AsyncClient:
        return self._client or get_http_client("media")

    async def _fetch(self, url: str) -> httpx.Response:
        response = await self.http.get(url)
        response.raise_for_status()
        return response

    async def download(self, url: str) -> bytes:
        if not is_http_url(url):
            raise MediaValidationError(f"Not an http(s) URL: {url!r}")

        handler = RetryHandler(
            "media download", max_attempts=self.max_attempts, delay=self.delay, backoff=2.0,
        )
        response = await handler.execute_with_retry(self._fetch, url)
        data = response.content
        size = len(data)

        if size < self.min_bytes:
            raise MediaValidationError(f"Downloaded file too small ({size} bytes) from {url}")
        if size > self.max_bytes:
            raise MediaValidationError(f"Downloaded file too large ({size} bytes) from {url}")

        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > 0:
            drift = abs(size - int(declared)) / int(declared)
            if drift > CONTENT_LENGTH_TOLERANCE:
                raise MediaValidationError(
                    f"Size mismatch for {url}: got {size} bytes, Content-Length {declared}"
                )
        return data


class LocalMediaStore:
    def __init__(self, root: Path | None = None, public_base: str | None = None):
        settings = get_settings()
        self.root = root or settings.media_path
        self.public_base = (public_base or settings.PUBLIC_API_URL).rstrip("/") + "/media"

    async def save(self, relative_path: str, data: bytes) -> str:
        """Write *data* under the media root off the event loop; return its public URL."""
        target = self.root / relative_path
        await asyncio.to_thread(self._write, target, data)
        logger.debug("Stored %d bytes at %s", len(data), target)
        return f"{self.public_base}/{relative_path}"

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


class MediaMirror:
    def __init__(self, downloader: MediaDownloader | None = None, store: LocalMediaStore | None = None):
        self.downloader = downloader or MediaDownloader()
        self.store = store or LocalMediaStore()

    async def mirror_tracks(self, job_id: str, tracks: list[TrackItem]) -> list[TrackItem]:
        """Swap provider audio URLs for local copies; keep the provider URL on failure."""
        mirrored = []
        for index, track in enumerate(tracks, start=1):
            if not is_http_url(track.audio_url):
                mirrored.append(track)
                continue
            try:
                data = await self.downloader.download(track.audio_url)
            except ProviderError as exc:
                logger.warning(
                    "Keeping provider URL for job %s variant %d: %s", short_id(job_id), index, exc,
                )
                mirrored.append(track)
                continue
            url = await self.store.save(f"songs/{job_id}/variant-{index}.mp3", data)
            mirrored.append(track.model_copy(update={"audio_url": url}))
        return mirrored

    async def mirror_stems(self, song_id: str, vocals_url: str, instrumental_url: str) -> tuple[str, str]:
        """Copy both stems; raises ``MediaValidationError`` if either is unusable."""
        vocals = await self.downloader.download(vocals_url)
        instrumental = await self.downloader.download(instrumental_url)
        return (
            await self.store.save(f"stems/{song_id}/vocals.mp3", vocals),
            await self.store.save(f"stems/{song_id}/instrumental.mp3", instrumental),
        )
