"""Tests for the lyrics approval state machine."""
from datetime import datetime, timedelta, timezone

import pytest

from factories import make_approval, make_job, make_order
from musiclovely.models import AdminLog, Song
from musiclovely.services.approval_service import ApprovalService, needs_forced_regeneration
from musiclovely.services.errors import InvalidStateError, NotFoundError
from musiclovely.utils.helpers import as_utc

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def dispatched():
    return []


@pytest.fixture
def service(dispatched):
    return ApprovalService(dispatch=dispatched.append)


def _in_flight_job(db):
    """A job already generating, last touched after its approval was edited."""
    return make_job(
        db,
        make_order(db),
        status="processing",
        suno_task_id="task-live",
        submitted_at=T0,
        updated_at=T0 + timedelta(hours=1),
    )


class TestApprove:
    def test_pending_job_is_dispatched(self, db_session, service, dispatched):
        job = make_job(db_session, make_order(db_session))
        approval = make_approval(db_session, job)

        result = service.approve(db_session, approval.id)

        assert result.generation_dispatched is True
        assert result.forced_regeneration is True
        assert dispatched == [job.id]
        db_session.refresh(job)
        db_session.refresh(approval)
        assert approval.status == "approved"
        assert approval.approved_at is not None
        assert job.status == "processing"

    def test_in_flight_job_is_not_dispatched_again(self, db_session, service, dispatched):
        job = _in_flight_job(db_session)
        approval = make_approval(db_session, job, updated_at=T0)

        result = service.approve(db_session, approval.id)

        assert result.generation_dispatched is False
        assert result.forced_regeneration is False
        assert dispatched == []
        db_session.refresh(job)
        assert job.suno_task_id == "task-live"

    def test_edited_approval_forces_regeneration(self, db_session, service, dispatched):
        job = _in_flight_job(db_session)
        approval = make_approval(db_session, job, updated_at=T0 + timedelta(hours=2))

        result = service.approve(db_session, approval.id)

        assert result.forced_regeneration is True
        assert dispatched == [job.id]
        db_session.refresh(job)
        assert job.suno_task_id is None
        assert job.submitted_at is None
        assert job.status == "processing"

    def test_reapproval_after_unapprove_dispatches_once(self, db_session, service, dispatched):
        job = _in_flight_job(db_session)
        approval = make_approval(db_session, job, updated_at=T0)
        service.approve(db_session, approval.id)
        service.unapprove(db_session, approval.id)

        service.approve(db_session, approval.id)
        assert dispatched == [job.id]

    def test_only_pending_can_be_approved(self, db_session, service):
        job = make_job(db_session, make_order(db_session))
        approval = make_approval(db_session, job, status="approved")
        with pytest.raises(InvalidStateError):
            service.approve(db_session, approval.id)

    def test_unknown_approval(self, db_session, service):
        with pytest.raises(NotFoundError):
            service.approve(db_session, "missing")

    def test_dispatch_failure_marks_job_failed(self, db_session):
        def broken(job_id):
            raise ConnectionError("broker down")

        job = make_job(db_session, make_order(db_session))
        approval = make_approval(db_session, job)

        result = ApprovalService(dispatch=broken).approve(db_session, approval.id)

        assert result.generation_dispatched is False
        db_session.refresh(job)
        assert job.status == "failed"
        assert "broker down" in job.error_message

    def test_writes_admin_log(self, db_session, service):
        job = make_job(db_session, make_order(db_session))
        approval = make_approval(db_session, job)
        service.approve(db_session, approval.id)

        log = db_session.query(AdminLog).filter(AdminLog.action == "lyrics_approved").one()
        assert log.target_id == approval.id
        assert log.changes["generation_dispatched"] is True


class TestNeedsForcedRegeneration:
    def test_pending_job(self, db_session):
        job = make_job(db_session, make_order(db_session))
        approval = make_approval(db_session, job)
        assert needs_forced_regeneration(approval, job) is True

    def test_older_approval(self, db_session):
        job = _in_flight_job(db_session)
        approval = make_approval(db_session, job, updated_at=T0)
        assert needs_forced_regeneration(approval, job) is False


class TestUnapprove:
    def test_resets_job_and_removes_unreleased_songs(self, db_session, service):
        job = make_job(db_session, make_order(db_session), status="succeeded", suno_task_id="task-done")
        approval = make_approval(db_session, job, status="approved")
        db_session.add_all([
            Song(order_id=job.order_id, job_id=job.id, variant_number=1, status="ready"),
            Song(order_id=job.order_id, job_id=job.id, variant_number=2, status="ready", released_at=T0),
        ])
        db_session.commit()

        service.unapprove(db_session, approval.id)

        db_session.refresh(job)
        db_session.refresh(approval)
        assert approval.status == "pending"
        assert approval.approved_at is None
        assert as_utc(approval.expires_at) > datetime.now(timezone.utc) + timedelta(hours=71)
        assert job.status == "pending"
        assert job.suno_task_id is None
        remaining = db_session.query(Song).filter(Song.job_id == job.id).all()
        assert [s.variant_number for s in remaining] == [2]

    def test_only_approved_can_be_unapproved(self, db_session, service):
        job = make_job(db_session, make_order(db_session))
        approval = make_approval(db_session, job)
        with pytest.raises(InvalidStateError):
            service.unapprove(db_session, approval.id)


class TestReject:
    def test_records_reason(self, db_session, service, dispatched):
        job = make_job(db_session, make_order(db_session))
        approval = make_approval(db_session, job)

        service.reject(db_session, approval.id, "Nome errado")

        db_session.refresh(approval)
        assert approval.status == "rejected"
        assert approval.rejection_reason == "Nome errado"
        assert approval.rejected_at is not None
        assert dispatched == []
