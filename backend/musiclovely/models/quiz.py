"""Quiz model — the customer's answers that shape lyrics and style."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from musiclovely.database import Base


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=True)
    about_who: Mapped[str | None] = mapped_column(String(255), nullable=True)
    style: Mapped[str | None] = mapped_column(String(100), nullable=True)
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="pt")
    vocal_gender: Mapped[str | None] = mapped_column(String(10), nullable=True)  # m | f | empty
    answers: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    order = relationship("Order", back_populates="quiz")

    def __repr__(self) -> str:
        return f"<Quiz {self.id[:8]} ({self.style})>"
