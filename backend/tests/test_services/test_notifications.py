"""Tests for the music-ready email."""
import asyncio
import json

import httpx
import pytest

from factories import json_response, make_job, make_order, mock_http
from musiclovely.models import EmailLog, Song
from musiclovely.services.email_client import ResendClient
from musiclovely.services.errors import BadRequestError, NotFoundError
from musiclovely.services.notifications import NotificationService


class _Resend:
    def __init__(self):
        self.requests = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        return json_response(200, {"id": "email-123"})

    def service(self):
        return NotificationService(ResendClient(api_key="re_test", client=mock_http(self), delay=0))


def _order_with_songs(db, audio_urls=("https://cdn.example.com/a.mp3", "https://cdn.example.com/b.mp3")):
    order = make_order(db)
    job = make_job(db, order, status="succeeded")
    songs = []
    for n, url in enumerate(audio_urls, start=1):
        song = Song(order_id=order.id, job_id=job.id, variant_number=n, title="Nosso Amor", audio_url=url, duration_sec=200)
        db.add(song)
        songs.append(song)
    db.commit()
    return order, songs


class TestMusicReadyEmail:
    def test_sends_download_links_and_logs(self, db_session):
        order, songs = _order_with_songs(db_session)
        resend = _Resend()

        result = asyncio.run(resend.service().send_music_ready(db_session, order.id, songs[0].id))

        assert result.success is True
        assert result.email_id == "email-123"
        body = json.loads(resend.requests[0].content)
        for song in songs:
            assert f"/download/{song.id}/{order.magic_token}" in body["html"]
        assert "Maria" in body["html"]
        assert resend.requests[0].headers["Idempotency-Key"].startswith("production_complete-")
        log = db_session.query(EmailLog).one()
        assert log.status == "sent"
        assert log.email_type == "production_complete"

    def test_requires_audio_for_every_song(self, db_session):
        order, _ = _order_with_songs(db_session, audio_urls=("https://cdn.example.com/a.mp3", None))
        with pytest.raises(BadRequestError):
            asyncio.run(_Resend().service().send_music_ready(db_session, order.id))

    def test_requires_songs(self, db_session):
        order = make_order(db_session)
        with pytest.raises(BadRequestError):
            asyncio.run(_Resend().service().send_music_ready(db_session, order.id))

    def test_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            asyncio.run(_Resend().service().send_music_ready(db_session, "missing"))

    def test_missing_api_key_is_logged_as_failed(self, db_session):
        order, _ = _order_with_songs(db_session)
        service = NotificationService(ResendClient(api_key="", client=mock_http(_Resend())))

        result = asyncio.run(service.send_music_ready(db_session, order.id))

        assert result.success is False
        assert "RESEND_API_KEY" in result.error
        assert db_session.query(EmailLog).one().status == "failed"
