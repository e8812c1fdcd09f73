"""Admin audit log helper."""
from __future__ import annotations

from sqlalchemy.orm import Session

from musiclovely.models import AdminLog


def log_admin_action(
    db: Session,
    action: str,
    target_table: str,
    target_id: str,
    changes: dict | None = None,
) -> AdminLog:
    """Add an ``admin_logs`` row to the session; the caller commits."""
    entry = AdminLog(
        action=action,
        target_table=target_table,
        target_id=target_id,
        changes=changes,
    )
    db.add(entry)
    return entry
