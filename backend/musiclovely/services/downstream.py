"""Follow-up actions fired once a generation job first reaches success."""
from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.orm import Session

from musiclovely.models import GenerationJob, Order, Song
from musiclovely.services.audit import log_admin_action
from musiclovely.utils.helpers import short_id, utcnow

logger = logging.getLogger(__name__)

NotifyFn = Callable[[str, str], None]


def _enqueue_music_ready_email(order_id: str, song_id: str) -> None:
    from musiclovely.tasks.notifications import send_music_ready_email
    send_music_ready_email.delay(order_id, song_id)


class DownstreamDispatcher:
    """Marks the order and enqueues the "music ready" email.

    Callers must only invoke this after they performed the success
    transition themselves (see ``job_state.complete_job``).
    """

    def __init__(self, notify: NotifyFn | None = None):
        self._notify = notify or _enqueue_music_ready_email

    def on_generation_succeeded(self, db: Session, job: GenerationJob, song: Song) -> bool:
        order = db.query(Order).filter(Order.id == job.order_id).first()
        if order is not None:
            order.music_ready_at = utcnow()
        log_admin_action(
            db,
            "music_ready",
            "jobs",
            job.id,
            {"order_id": job.order_id, "song_id": song.id, "task_id": job.suno_task_id},
        )
        db.commit()

        try:
            self._notify(job.order_id, song.id)
        except Exception:
            logger.exception(
                "Could not enqueue music-ready email for order %s", short_id(job.order_id),
            )
            return False
        logger.info(
            "Music-ready email queued for order %s (song %s)",
            short_id(job.order_id), short_id(song.id),
        )
        return True
