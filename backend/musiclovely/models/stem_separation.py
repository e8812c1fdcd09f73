"""StemSeparation model — vocal/instrumental split of a finished song."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Text, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from musiclovely.database import Base


class StemSeparation(Base):
    __tablename__ = "stem_separations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    song_id: Mapped[str] = mapped_column(String(36), ForeignKey("songs.id", ondelete="CASCADE"), nullable=False)
    generation_task_id: Mapped[str] = mapped_column(String(255), nullable=False)
    audio_id: Mapped[str] = mapped_column(String(255), nullable=False)
    separation_type: Mapped[str] = mapped_column(String(30), nullable=False, default="separate_vocal")
    separation_task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending | processing | completed | failed
    vocals_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    instrumental_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    song = relationship("Song")

    __table_args__ = (
        Index("ix_stem_separations_song_id", "song_id"),
        Index("ix_stem_separations_separation_task_id", "separation_task_id"),
        # at most one in-flight separation per song
        Index(
            "uq_stem_separations_song_in_flight",
            "song_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'processing')"),
            postgresql_where=text("status IN ('pending', 'processing')"),
        ),
    )

    def __repr__(self) -> str:
        return f"<StemSeparation {self.id[:8]} ({self.status})>"
