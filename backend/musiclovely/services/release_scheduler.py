"""Release scheduler: makes finished songs available once ``release_at`` passes.

Due songs are grouped per order. Each order's songs are flipped to
``released`` with a conditional update, and only the run whose update
touched rows sends the "music released" email.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable

from sqlalchemy.orm import Session

from musiclovely.models import Song
from musiclovely.schemas.common import SongStatus
from musiclovely.schemas.orders import EmailSendResult, ReleaseSweepResult, SweepError
from musiclovely.utils.helpers import short_id, utcnow

logger = logging.getLogger(__name__)

SendFn = Callable[[Session, str, str], Awaitable[EmailSendResult]]

RELEASABLE = (SongStatus.READY.value, SongStatus.APPROVED.value)


class ReleaseScheduler:
    def __init__(self, send: SendFn | None = None):
        if send is None:
            from musiclovely.services.notifications import NotificationService
            send = NotificationService().send_music_released
        self._send = send

    @staticmethod
    def find_due(db: Session, now: datetime) -> list[Song]:
        return (
            db.query(Song)
            .filter(
                Song.status.in_(RELEASABLE),
                Song.released_at.is_(None),
                Song.release_at.isnot(None),
                Song.release_at <= now,
                Song.audio_url.isnot(None),
                Song.audio_url != "",
            )
            .order_by(Song.release_at.asc(), Song.variant_number.asc())
            .all()
        )

    @staticmethod
    def release_order(db: Session, order_id: str, song_ids: list[str], now: datetime) -> int:
        updated = (
            db.query(Song)
            .filter(
                Song.order_id == order_id,
                Song.id.in_(song_ids),
                Song.released_at.is_(None),
            )
            .update(
                {Song.status: SongStatus.RELEASED.value, Song.released_at: now, Song.updated_at: now},
                synchronize_session=False,
            )
        )
        db.commit()
        return updated

    async def run(self, db: Session, now: datetime | None = None) -> ReleaseSweepResult:
        now = now or utcnow()
        due = self.find_due(db, now)

        by_order: dict[str, list[str]] = {}
        for song in due:
            by_order.setdefault(song.order_id, []).append(song.id)

        result = ReleaseSweepResult(songs_found=len(due), processed_orders=len(by_order))
        errors: list[SweepError] = []

        for order_id, song_ids in by_order.items():
            released = self.release_order(db, order_id, song_ids, now)
            if released == 0:
                logger.info("Songs of order %s were released by another run", short_id(order_id))
                continue
            result.songs_released += released

            try:
                sent = await self._send(db, order_id, song_ids[0])
            except Exception as exc:
                logger.exception("Released email crashed for order %s", short_id(order_id))
                db.rollback()
                errors.append(SweepError(order_id=order_id, error=str(exc)))
                continue

            if sent.success:
                result.emails_sent += 1
            else:
                errors.append(SweepError(order_id=order_id, error=sent.error or "Email not sent"))

        if errors:
            result.errors = errors
        logger.info(
            "Release sweep: %d song(s) due across %d order(s), %d released, %d email(s), %d error(s)",
            result.songs_found, result.processed_orders, result.songs_released, result.emails_sent, len(errors),
        )
        return result
