"""Tests for the release scheduler and the "music released" email."""
import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx

from factories import json_response, make_job, make_order, mock_http
from musiclovely.models import EmailLog, Song
from musiclovely.schemas.orders import EmailSendResult
from musiclovely.services.email_client import ResendClient
from musiclovely.services.notifications import NotificationService
from musiclovely.services.release_scheduler import ReleaseScheduler

T = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


class _Resend:
    def __init__(self):
        self.sent = []

    def __call__(self, request: httpx.Request):
        self.sent.append((request.headers["Idempotency-Key"], json.loads(request.content)))
        return json_response(200, {"id": f"email-{len(self.sent)}"})

    def scheduler(self):
        client = ResendClient(api_key="re_test", client=mock_http(self), delay=0)
        return ReleaseScheduler(send=NotificationService(client).send_music_released)


def _songs(db, release_at, count=2, **kwargs):
    order = make_order(db)
    job = make_job(db, order, status="succeeded")
    songs = []
    for n in range(1, count + 1):
        values = {
            "order_id": order.id,
            "job_id": job.id,
            "variant_number": n,
            "title": "Nosso Amor",
            "audio_url": f"https://cdn.example.com/{n}.mp3",
            "status": "ready",
            "release_at": release_at,
        }
        values.update(kwargs)
        song = Song(**values)
        db.add(song)
        songs.append(song)
    db.commit()
    return order, songs


class TestReleaseScheduler:
    def test_releases_due_songs_and_emails_once_per_order(self, db_session):
        order, songs = _songs(db_session, release_at=T - timedelta(minutes=1))
        resend = _Resend()

        result = asyncio.run(resend.scheduler().run(db_session, now=T))

        assert result.songs_found == 2
        assert result.processed_orders == 1
        assert result.songs_released == 2
        assert result.emails_sent == 1
        assert result.errors is None
        for song in songs:
            db_session.refresh(song)
            assert song.status == "released"
            assert song.released_at is not None

        key, message = resend.sent[0]
        assert key.startswith("music_released-")
        assert message["to"] == ["ana@example.com"]
        for song in songs:
            assert f"/download/{song.id}/{order.magic_token}" in message["html"]
        assert db_session.query(EmailLog).one().email_type == "music_released"

    def test_second_run_does_nothing(self, db_session):
        _songs(db_session, release_at=T - timedelta(minutes=1))
        resend = _Resend()
        scheduler = resend.scheduler()

        asyncio.run(scheduler.run(db_session, now=T))
        second = asyncio.run(scheduler.run(db_session, now=T + timedelta(minutes=5)))

        assert second.songs_found == 0
        assert second.emails_sent == 0
        assert len(resend.sent) == 1

    def test_songs_not_yet_due_stay_ready(self, db_session):
        _, songs = _songs(db_session, release_at=T + timedelta(hours=1))
        resend = _Resend()

        result = asyncio.run(resend.scheduler().run(db_session, now=T))

        assert result.songs_found == 0
        assert resend.sent == []
        db_session.refresh(songs[0])
        assert songs[0].status == "ready"

    def test_songs_without_audio_are_skipped(self, db_session):
        _songs(db_session, release_at=T - timedelta(hours=1), audio_url=None)

        result = asyncio.run(_Resend().scheduler().run(db_session, now=T))
        assert result.songs_found == 0

    def test_email_failure_is_reported_but_release_sticks(self, db_session):
        order, songs = _songs(db_session, release_at=T - timedelta(minutes=1), count=1)

        async def send(db, order_id, song_id):
            return EmailSendResult(success=False, error="Resend is down")

        result = asyncio.run(ReleaseScheduler(send=send).run(db_session, now=T))

        assert result.songs_released == 1
        assert result.emails_sent == 0
        assert result.errors[0].order_id == order.id
        assert result.errors[0].error == "Resend is down"
        db_session.refresh(songs[0])
        assert songs[0].status == "released"
