"""Admin "create new music" flow: a fresh generation job for an existing order."""
from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from musiclovely.config import get_settings
from musiclovely.models import GenerationJob, LyricsApproval, Order, Quiz
from musiclovely.schemas.common import ApprovalStatus, JobStatus
from musiclovely.schemas.orders import NewMusicResult
from musiclovely.services.audit import log_admin_action
from musiclovely.services.errors import BadRequestError, NotFoundError
from musiclovely.utils.helpers import short_id, utcnow
from musiclovely.utils.lyrics import build_preview, lyrics_text

logger = logging.getLogger(__name__)


def normalize_lyrics(lyrics) -> dict | None:
    """Accept lyrics as plain text or ``{"title", "lyrics"}``; None when empty."""
    if lyrics is None:
        return None
    if isinstance(lyrics, str):
        return {"lyrics": lyrics.strip()} if lyrics.strip() else None
    if isinstance(lyrics, dict):
        return dict(lyrics) if lyrics_text(lyrics).strip() else None
    raise BadRequestError("lyrics must be a string or an object")


def create_new_music(
    db: Session,
    order_id: str,
    lyrics=None,
    voice: str | None = None,
) -> NewMusicResult:
    """Add a new job to *order_id*; earlier jobs and their songs are left untouched.

    With lyrics, a pending approval is opened for the new job so it goes
    through the usual review before anything is generated.
    """
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order not found")

    if voice is not None:
        voice = str(voice).strip().upper() or None
        if voice is not None and voice not in ("M", "F", "S"):
            raise BadRequestError("voice must be M, F or S")

    lyrics_blob = normalize_lyrics(lyrics)
    quiz = db.query(Quiz).filter(Quiz.order_id == order.id).first()
    existing = db.query(GenerationJob).filter(GenerationJob.order_id == order.id).count()
    music_number = existing + 1

    job = GenerationJob(
        order_id=order.id,
        quiz_id=quiz.id if quiz else None,
        status=JobStatus.PENDING.value,
        gpt_lyrics=lyrics_blob,
    )
    db.add(job)
    db.flush()

    approval = None
    if lyrics_blob is not None:
        approval = LyricsApproval(
            order_id=order.id,
            job_id=job.id,
            quiz_id=quiz.id if quiz else None,
            lyrics=lyrics_blob,
            lyrics_preview=build_preview(lyrics_text(lyrics_blob)),
            voice=voice,
            status=ApprovalStatus.PENDING.value,
            expires_at=utcnow() + timedelta(hours=get_settings().APPROVAL_EXPIRY_HOURS),
        )
        db.add(approval)
        db.flush()

    log_admin_action(
        db,
        "new_music_created",
        "jobs",
        job.id,
        {
            "order_id": order.id,
            "music_number": music_number,
            "approval_id": approval.id if approval else None,
        },
    )
    db.commit()
    logger.info(
        "Created music #%d (job %s) for order %s%s",
        music_number, short_id(job.id), short_id(order.id),
        " with lyrics awaiting approval" if approval else "",
    )
    return NewMusicResult(
        message=f"Music #{music_number} created",
        order_id=order.id,
        job_id=job.id,
        approval_id=approval.id if approval else None,
        music_number=music_number,
        total_musics=music_number,
        has_lyrics=approval is not None,
    )
