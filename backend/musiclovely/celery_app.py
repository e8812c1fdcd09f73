"""Celery application factory and worker configuration.

Defines the shared Celery instance used by all background tasks, along
with the beat schedule for the sweeps and serialisation settings. A
``worker_init`` signal hook releases generation claims left behind by a
worker that died mid-request.
"""
import logging
from celery import Celery
from celery.signals import worker_init
from musiclovely.config import get_settings

settings = get_settings()

celery_app = Celery(
    "musiclovely_worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "musiclovely.tasks.generation",
        "musiclovely.tasks.notifications",
        "musiclovely.tasks.orders",
        "musiclovely.tasks.releases",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=False,           # a redelivered submit could create a second provider task
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24 hours
    broker_connection_retry_on_startup=True,
    beat_schedule={
        "poll-processing-jobs": {
            "task": "generation.poll_processing_jobs",
            "schedule": float(settings.POLL_SWEEP_INTERVAL_SECONDS),
        },
        "check-pending-orders": {
            "task": "orders.check_pending_orders",
            "schedule": float(settings.PENDING_ORDER_SWEEP_INTERVAL_SECONDS),
        },
        "release-due-songs": {
            "task": "releases.release_due_songs",
            "schedule": float(settings.RELEASE_SWEEP_INTERVAL_SECONDS),
        },
    },
)


@worker_init.connect
def setup_worker(**kwargs):
    """Run once when the Celery worker process starts.

    - Suppress noisy HTTP loggers.
    - Release stale generation claims so those jobs can be resubmitted.
    """
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    from musiclovely.utils.startup import recover_stale_submissions
    recover_stale_submissions()
