"""Tests for the pending-order sweep and the checkout reminder it sends."""
import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx

from factories import json_response, make_order, mock_http
from musiclovely.config import get_settings
from musiclovely.models import EmailFunnelCompleted, EmailFunnelExited, EmailFunnelPending, EmailLog
from musiclovely.services.email_client import ResendClient
from musiclovely.services.notifications import NotificationService
from musiclovely.services.pending_orders import PendingOrderSweep

T = datetime(2026, 5, 4, 9, 30, tzinfo=timezone.utc)


class _Resend:
    def __init__(self, status_code=200):
        self.sent = []
        self.status_code = status_code

    def __call__(self, request: httpx.Request):
        self.sent.append(json.loads(request.content))
        if self.status_code != 200:
            return json_response(self.status_code, {"message": "Invalid `to` field"})
        return json_response(200, {"id": f"email-{len(self.sent)}"})

    def sweep(self):
        client = ResendClient(api_key="re_test", client=mock_http(self), delay=0)
        return PendingOrderSweep(send=NotificationService(client).send_checkout_reminder)


def _pending_order(db, **kwargs):
    values = {"status": "pending", "created_at": T}
    values.update(kwargs)
    return make_order(db, **values)


class TestPendingOrderSweep:
    def test_order_younger_than_threshold_is_not_selected(self, db_session):
        _pending_order(db_session)
        resend = _Resend()

        result = asyncio.run(resend.sweep().run(db_session, now=T + timedelta(minutes=6, seconds=59)))

        assert result.total_found == 0
        assert resend.sent == []

    def test_pending_at_takes_precedence_over_created_at(self, db_session):
        _pending_order(db_session, created_at=T - timedelta(hours=2), pending_at=T)
        resend = _Resend()

        result = asyncio.run(resend.sweep().run(db_session, now=T + timedelta(minutes=5)))
        assert result.total_found == 0

    def test_emailed_once_then_skipped(self, db_session):
        order = _pending_order(db_session)
        resend = _Resend()
        sweep = resend.sweep()

        first = asyncio.run(sweep.run(db_session, now=T + timedelta(minutes=8)))
        assert first.total_found == 1
        assert first.email_processed == 1
        assert first.processed_order_ids == [order.id]
        assert first.errors is None

        second = asyncio.run(sweep.run(db_session, now=T + timedelta(minutes=9)))
        assert second.total_found == 1
        assert second.already_in_email_funnel == 1
        assert second.email_processed == 0
        assert len(resend.sent) == 1

        funnel = db_session.query(EmailFunnelPending).filter(EmailFunnelPending.order_id == order.id).one()
        assert funnel.current_step == 1
        assert funnel.next_email_at is not None

    def test_reminder_links_to_checkout(self, db_session):
        order = _pending_order(db_session)
        resend = _Resend()
        asyncio.run(resend.sweep().run(db_session, now=T + timedelta(minutes=10)))

        message = resend.sent[0]
        assert message["to"] == ["ana@example.com"]
        assert f"/checkout/{order.id}" in message["html"]

    def test_orders_in_any_funnel_table_are_excluded(self, db_session):
        completed = _pending_order(db_session, customer_email="a@example.com")
        exited = _pending_order(db_session, customer_email="b@example.com")
        db_session.add_all([
            EmailFunnelCompleted(order_id=completed.id),
            EmailFunnelExited(order_id=exited.id, exit_reason="unsubscribed"),
        ])
        db_session.commit()
        resend = _Resend()

        result = asyncio.run(resend.sweep().run(db_session, now=T + timedelta(minutes=30)))

        assert result.total_found == 2
        assert result.already_in_email_funnel == 2
        assert result.processed == 0
        assert resend.sent == []

    def test_ignores_paid_orders_and_missing_email(self, db_session):
        _pending_order(db_session, status="paid")
        _pending_order(db_session, customer_email="")
        _pending_order(db_session, customer_email="   ")
        _pending_order(db_session, customer_email=None)

        result = asyncio.run(_Resend().sweep().run(db_session, now=T + timedelta(hours=1)))
        assert result.total_found == 0

    def test_send_failure_is_reported_and_not_funneled(self, db_session):
        order = _pending_order(db_session)
        resend = _Resend(status_code=422)

        result = asyncio.run(resend.sweep().run(db_session, now=T + timedelta(minutes=8)))

        assert result.email_processed == 0
        assert len(result.errors) == 1
        assert result.errors[0].order_id == order.id
        assert len(resend.sent) == 1
        assert db_session.query(EmailFunnelPending).count() == 0
        log = db_session.query(EmailLog).one()
        assert log.status == "failed"

    def test_crashing_sender_does_not_stop_the_sweep(self, db_session):
        first = _pending_order(db_session, customer_email="a@example.com", created_at=T - timedelta(minutes=5))
        second = _pending_order(db_session, customer_email="b@example.com")
        calls = []

        async def send(db, order_id):
            calls.append(order_id)
            if order_id == first.id:
                raise RuntimeError("template exploded")
            return await _Resend().sweep()._send(db, order_id)

        result = asyncio.run(PendingOrderSweep(send=send).run(db_session, now=T + timedelta(minutes=8)))

        assert calls == [first.id, second.id]
        assert result.email_processed == 1
        assert result.errors[0].error == "template exploded"

    def test_funnel_orders_do_not_fill_the_batch(self, db_session, monkeypatch):
        monkeypatch.setattr(get_settings(), "PENDING_ORDER_BATCH_LIMIT", 2)
        for i in range(3):
            old = _pending_order(db_session, customer_email=f"old{i}@example.com", created_at=T - timedelta(days=1))
            db_session.add(EmailFunnelPending(order_id=old.id, customer_email=old.customer_email, current_step=1))
        db_session.commit()
        fresh = _pending_order(db_session, customer_email="fresh@example.com")
        resend = _Resend()

        result = asyncio.run(resend.sweep().run(db_session, now=T + timedelta(minutes=8)))

        assert result.already_in_email_funnel == 3
        assert result.total_found == 4
        assert result.processed_order_ids == [fresh.id]
        assert [m["to"] for m in resend.sent] == [["fresh@example.com"]]
