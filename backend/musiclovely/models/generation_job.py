"""GenerationJob model — one request to the audio-generation provider."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Text, Integer, Float, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from musiclovely.database import Base


class GenerationJob(Base):
    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    quiz_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("quizzes.id", ondelete="SET NULL"), nullable=True)
    suno_task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    suno_audio_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending | processing | text_ready | first_ready | succeeded | failed
    progress_pct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gpt_lyrics: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    suno_audio_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    suno_video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    suno_cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_sec: Mapped[float | None] = mapped_column(Float, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)  # claim marker for an in-flight provider request
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    order = relationship("Order", back_populates="jobs")
    songs = relationship("Song", back_populates="job", lazy="dynamic")

    __table_args__ = (
        Index("ix_jobs_order_id", "order_id"),
        Index("ix_jobs_status", "status"),
        Index("ix_jobs_suno_task_id", "suno_task_id"),
    )

    def __repr__(self) -> str:
        return f"<GenerationJob {self.id[:8]} ({self.status})>"
