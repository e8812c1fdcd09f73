"""Shared / common schemas: status enums and base responses."""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel


# ── Enums ──────────────────────────────────────────────────────────────

class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    TEXT_READY = "text_ready"
    FIRST_READY = "first_ready"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


ACTIVE_JOB_STATUSES = (
    JobStatus.PROCESSING.value,
    JobStatus.TEXT_READY.value,
    JobStatus.FIRST_READY.value,
)


class PollStatus(str, Enum):
    """Outcome of a single status poll, as returned to the admin UI."""
    COMPLETE = "complete"
    PROCESSING = "processing"
    ERROR = "error"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SeparationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class SongStatus(str, Enum):
    READY = "ready"
    APPROVED = "approved"
    RELEASED = "released"


# ── Common Responses ───────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
