"""SQLAlchemy ORM models package."""
from musiclovely.models.order import Order
from musiclovely.models.quiz import Quiz
from musiclovely.models.generation_job import GenerationJob
from musiclovely.models.song import Song
from musiclovely.models.lyrics_approval import LyricsApproval
from musiclovely.models.stem_separation import StemSeparation
from musiclovely.models.email_log import EmailLog
from musiclovely.models.admin_log import AdminLog
from musiclovely.models.email_funnel import (
    EmailFunnelPending,
    EmailFunnelCompleted,
    EmailFunnelExited,
)

__all__ = [
    "Order",
    "Quiz",
    "GenerationJob",
    "Song",
    "LyricsApproval",
    "StemSeparation",
    "EmailLog",
    "AdminLog",
    "EmailFunnelPending",
    "EmailFunnelCompleted",
    "EmailFunnelExited",
]
