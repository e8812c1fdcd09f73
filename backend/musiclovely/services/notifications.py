"""Customer notifications: "music ready", "music released" and pending-checkout
reminders.

Every send attempt is recorded in ``email_logs``. A successful checkout
reminder also enters the order into the pending email funnel.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from musiclovely.config import get_settings
from musiclovely.models import EmailFunnelPending, EmailLog, Order, Quiz, Song
from musiclovely.schemas.common import SongStatus
from musiclovely.schemas.orders import EmailSendResult
from musiclovely.services.email_client import ResendClient
from musiclovely.services.email_templates import (
    MUSIC_READY_SUBJECT,
    MUSIC_RELEASED_SUBJECT,
    customer_name,
    render_checkout_reminder,
    render_music_ready,
)
from musiclovely.services.errors import BadRequestError, NotFoundError
from musiclovely.services.retry_handler import ProviderError
from musiclovely.utils.helpers import short_id, utcnow

logger = logging.getLogger(__name__)

MUSIC_READY = "production_complete"
MUSIC_RELEASED = "music_released"
CHECKOUT_REMINDER = "checkout_reminder"


class NotificationService:
    def __init__(self, email_client: ResendClient | None = None):
        self.email = email_client or ResendClient()
        self.settings = get_settings()

    @staticmethod
    def _log(
        db: Session,
        email_type: str,
        order: Order,
        status: str,
        email_id: str | None = None,
        error: str | None = None,
        details: dict | None = None,
    ) -> None:
        db.add(EmailLog(
            email_type=email_type,
            recipient_email=order.customer_email or "",
            order_id=order.id,
            status=status,
            resend_email_id=email_id,
            template_used=email_type,
            error_message=error,
            details=details,
        ))

    @staticmethod
    def _load_order(db: Session, order_id: str) -> tuple[Order, Quiz | None]:
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        if not (order.customer_email or "").strip():
            raise BadRequestError("Order has no customer email")
        quiz = db.query(Quiz).filter(Quiz.order_id == order.id).first()
        return order, quiz

    # ── Music ready / released ─────────────────────────────────────────

    async def send_music_ready(self, db: Session, order_id: str, song_id: str | None = None) -> EmailSendResult:
        order, quiz = self._load_order(db, order_id)

        songs = (
            db.query(Song)
            .filter(Song.order_id == order.id)
            .order_by(Song.variant_number.asc(), Song.created_at.asc())
            .all()
        )
        if not songs:
            raise BadRequestError("Order has no songs yet")
        missing = [s for s in songs if not (s.audio_url or "").strip()]
        if missing:
            raise BadRequestError(f"{len(missing)} song(s) still have no audio URL")

        return await self._send_songs_email(
            db, order, quiz, songs, song_id, MUSIC_READY, MUSIC_READY_SUBJECT,
        )

    async def send_music_released(self, db: Session, order_id: str, song_id: str | None = None) -> EmailSendResult:
        """Email the download links of the order's released songs."""
        order, quiz = self._load_order(db, order_id)

        songs = (
            db.query(Song)
            .filter(
                Song.order_id == order.id,
                Song.status == SongStatus.RELEASED.value,
                Song.audio_url.isnot(None),
            )
            .order_by(Song.variant_number.asc(), Song.created_at.asc())
            .all()
        )
        if not songs:
            raise BadRequestError("Order has no released songs")

        return await self._send_songs_email(
            db, order, quiz, songs, song_id, MUSIC_RELEASED, MUSIC_RELEASED_SUBJECT,
        )

    async def _send_songs_email(
        self,
        db: Session,
        order: Order,
        quiz: Quiz | None,
        songs: list[Song],
        song_id: str | None,
        email_type: str,
        subject: str,
    ) -> EmailSendResult:
        featured = next((s for s in songs if s.id == song_id), songs[0])
        site = self.settings.SITE_URL.rstrip("/")
        downloads = [
            (f"Baixar música {i}" if len(songs) > 1 else "Baixar música",
             f"{site}/download/{song.id}/{order.magic_token}")
            for i, song in enumerate(songs, start=1)
        ]
        html = render_music_ready(
            customer=customer_name(order.customer_email, order.customer_name),
            recipient=(quiz.about_who if quiz and quiz.about_who else "alguém especial"),
            song_title=featured.title or "Sua música",
            music_style=(quiz.style if quiz and quiz.style else "Música personalizada"),
            duration=featured.duration_sec,
            downloads=downloads,
            heading=subject,
        )

        details = {"song_ids": [s.id for s in songs], "featured_song_id": featured.id}
        try:
            email_id = await self.email.send(
                order.customer_email,
                subject,
                html,
                idempotency_key=f"{email_type}-{order.id}-{featured.id}",
            )
        except ProviderError as exc:
            logger.warning("%s email for order %s failed: %s", email_type, short_id(order.id), exc)
            self._log(db, email_type, order, "failed", error=str(exc), details=details)
            db.commit()
            return EmailSendResult(success=False, error=str(exc))

        self._log(db, email_type, order, "sent", email_id=email_id, details=details)
        db.commit()
        return EmailSendResult(success=True, email_id=email_id)

    # ── Checkout reminder ──────────────────────────────────────────────

    def checkout_url(self, order: Order) -> str:
        return f"{self.settings.SITE_URL.rstrip('/')}/checkout/{order.id}"

    async def send_checkout_reminder(self, db: Session, order_id: str) -> EmailSendResult:
        order, quiz = self._load_order(db, order_id)

        subject, html = render_checkout_reminder(
            customer=customer_name(order.customer_email, order.customer_name),
            recipient=(quiz.about_who if quiz and quiz.about_who else "alguém especial"),
            checkout_url=self.checkout_url(order),
        )
        try:
            email_id = await self.email.send(
                order.customer_email,
                subject,
                html,
                idempotency_key=f"{CHECKOUT_REMINDER}-{order.id}-1",
            )
        except ProviderError as exc:
            logger.warning("Checkout reminder for order %s failed: %s", short_id(order.id), exc)
            self._log(db, CHECKOUT_REMINDER, order, "failed", error=str(exc))
            db.commit()
            return EmailSendResult(success=False, error=str(exc))

        now = utcnow()
        funnel = db.query(EmailFunnelPending).filter(EmailFunnelPending.order_id == order.id).first()
        if funnel is None:
            funnel = EmailFunnelPending(order_id=order.id, customer_email=order.customer_email)
            db.add(funnel)
        funnel.order_status = order.status
        funnel.current_step = 1
        funnel.last_email_sent_at = now
        funnel.next_email_at = now + timedelta(minutes=self.settings.FUNNEL_NEXT_EMAIL_MINUTES)
        self._log(db, CHECKOUT_REMINDER, order, "sent", email_id=email_id)
        db.commit()
        db.refresh(funnel)
        return EmailSendResult(success=True, email_id=email_id, funnel_id=funnel.id)
