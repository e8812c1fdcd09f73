"""Song model — a generated track (one per provider result item)."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Text, Integer, Float, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from musiclovely.database import Base


class Song(Base):
    __tablename__ = "songs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    job_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True)
    variant_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ready")  # ready | approved | released
    audio_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_sec: Mapped[float | None] = mapped_column(Float, nullable=True)
    suno_clip_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    suno_task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vocals_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    instrumental_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    stems_separated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    release_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    order = relationship("Order", back_populates="songs")
    job = relationship("GenerationJob", back_populates="songs")

    __table_args__ = (
        UniqueConstraint("job_id", "variant_number", name="uq_songs_job_variant"),
        Index("ix_songs_order_id", "order_id"),
        Index("ix_songs_suno_clip_id", "suno_clip_id"),
        Index("ix_songs_release_due", "status", "release_at"),
    )

    def __repr__(self) -> str:
        return f"<Song {self.id[:8]} #{self.variant_number} ({self.status})>"
