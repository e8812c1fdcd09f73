"""Pending-order sweep: nudge customers who stopped at checkout.

An order qualifies once it has sat in ``pending`` for the threshold
(``pending_at``, else ``created_at``) and is in none of the funnel tables.
A successful reminder puts the order in ``email_funnel_pending``, which
is what keeps later sweeps from emailing it again.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from sqlalchemy import exists, func, or_
from sqlalchemy.orm import Session

from musiclovely.config import get_settings
from musiclovely.models import (
    EmailFunnelCompleted,
    EmailFunnelExited,
    EmailFunnelPending,
    Order,
)
from musiclovely.schemas.common import OrderStatus
from musiclovely.schemas.orders import EmailSendResult, PendingOrderSweepResult, SweepError
from musiclovely.utils.helpers import short_id, utcnow

logger = logging.getLogger(__name__)

SendFn = Callable[[Session, str], Awaitable[EmailSendResult]]

FUNNEL_TABLES = (EmailFunnelPending, EmailFunnelCompleted, EmailFunnelExited)


class PendingOrderSweep:
    def __init__(self, send: SendFn | None = None):
        self.settings = get_settings()
        if send is None:
            from musiclovely.services.notifications import NotificationService
            send = NotificationService().send_checkout_reminder
        self._send = send

    def _eligible(self, db: Session, now: datetime):
        cutoff = now - timedelta(minutes=self.settings.PENDING_ORDER_THRESHOLD_MINUTES)
        pending_since = func.coalesce(Order.pending_at, Order.created_at)
        query = db.query(Order).filter(
            Order.status == OrderStatus.PENDING.value,
            Order.customer_email.isnot(None),
            func.trim(Order.customer_email) != "",
            pending_since <= cutoff,
        )
        return query, pending_since

    @staticmethod
    def _in_funnel():
        return or_(*(exists().where(table.order_id == Order.id) for table in FUNNEL_TABLES))

    def find_candidates(self, db: Session, now: datetime) -> list[Order]:
        """Oldest eligible orders not yet in any funnel table.

        The funnel filter runs before the batch limit, so orders that stay
        ``pending`` after their reminder never crowd out newer ones.
        """
        query, pending_since = self._eligible(db, now)
        return (
            query.filter(~self._in_funnel())
            .order_by(pending_since.asc())
            .limit(self.settings.PENDING_ORDER_BATCH_LIMIT)
            .all()
        )

    def count_in_funnel(self, db: Session, now: datetime) -> int:
        query, _ = self._eligible(db, now)
        return query.filter(self._in_funnel()).count()

    async def run(self, db: Session, now: datetime | None = None) -> PendingOrderSweepResult:
        now = now or utcnow()
        in_funnel = self.count_in_funnel(db, now)
        to_email = self.find_candidates(db, now)

        result = PendingOrderSweepResult(
            total_found=in_funnel + len(to_email),
            already_in_email_funnel=in_funnel,
            processed=len(to_email),
        )
        errors: list[SweepError] = []

        for order in to_email:
            order_id = order.id
            try:
                sent = await self._send(db, order_id)
            except Exception as exc:
                logger.exception("Checkout reminder crashed for order %s", short_id(order_id))
                db.rollback()
                errors.append(SweepError(order_id=order_id, error=str(exc)))
                continue

            if sent.success:
                result.email_processed += 1
                result.processed_order_ids.append(order_id)
            else:
                errors.append(SweepError(order_id=order_id, error=sent.error or "Email not sent"))

        if errors:
            result.errors = errors
        logger.info(
            "Pending-order sweep: %d found, %d in funnel, %d emailed, %d error(s)",
            result.total_found, result.already_in_email_funnel, result.email_processed, len(errors),
        )
        return result
