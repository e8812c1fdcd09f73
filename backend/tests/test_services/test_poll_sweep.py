"""Tests for the in-flight job sweep."""
import asyncio

import httpx
import pytest

from factories import json_response, make_job, make_order, mock_http, success_payload
from musiclovely.models import Song
from musiclovely.services.downstream import DownstreamDispatcher
from musiclovely.services.poll_sweep import PollSweep
from musiclovely.services.suno_client import SunoClient


class _Harness:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.dispatched = []
        self.notified = []

    def __call__(self, request: httpx.Request):
        if self.status_code != 200:
            return httpx.Response(self.status_code)
        return json_response(200, self.payload)

    def sweep(self):
        client = SunoClient(
            api_key="test-key", base_url="https://suno.test", client=mock_http(self), retry_delay=0,
        )
        return PollSweep(
            client=client,
            dispatcher=DownstreamDispatcher(notify=lambda o, s: self.notified.append(s)),
            dispatch=self.dispatched.append,
        )


@pytest.fixture
def job(db_session):
    return make_job(db_session, make_order(db_session), status="processing", suno_task_id="task-1")


class TestPollSweep:
    def test_completes_job(self, db_session, job):
        harness = _Harness(success_payload())

        result = asyncio.run(harness.sweep().run(db_session))

        assert result.total == 1
        assert result.completed == 1
        db_session.refresh(job)
        assert job.status == "succeeded"
        assert db_session.query(Song).filter(Song.job_id == job.id).count() == 2
        assert len(harness.notified) == 1

    def test_already_completed_job_is_not_picked_up(self, db_session, job):
        harness = _Harness(success_payload())
        asyncio.run(harness.sweep().run(db_session))
        result = asyncio.run(harness.sweep().run(db_session))

        assert result.total == 0
        assert len(harness.notified) == 1

    def test_failure_is_retried(self, db_session, job):
        harness = _Harness({"code": 200, "data": {"status": "GENERATE_AUDIO_FAILED", "errorMessage": "boom"}})

        result = asyncio.run(harness.sweep().run(db_session))

        assert result.retried == 1
        assert harness.dispatched == [job.id]
        db_session.refresh(job)
        assert job.retry_count == 1
        assert job.status == "pending"
        assert job.suno_task_id is None

    def test_failure_after_retries_fails_job(self, db_session):
        job = make_job(
            db_session, make_order(db_session), status="processing", suno_task_id="task-1", retry_count=2,
        )
        harness = _Harness({"code": 200, "data": {"status": "FAILED", "errorMessage": "boom"}})

        result = asyncio.run(harness.sweep().run(db_session))

        assert result.failed == 1
        assert harness.dispatched == []
        db_session.refresh(job)
        assert job.status == "failed"
        assert job.error_message == "Generation failed after 3 attempts: boom"

    def test_progress_is_recorded(self, db_session, job):
        harness = _Harness({"code": 200, "data": {"status": "FIRST_SUCCESS"}})

        result = asyncio.run(harness.sweep().run(db_session))

        assert result.still_processing == 1
        db_session.refresh(job)
        assert job.status == "first_ready"
        assert job.progress_pct == 60

    def test_unreachable_provider_leaves_job_alone(self, db_session, job):
        harness = _Harness(status_code=404)

        result = asyncio.run(harness.sweep().run(db_session))

        assert result.still_processing == 1
        db_session.refresh(job)
        assert job.status == "processing"

    def test_jobs_without_task_id_are_skipped(self, db_session):
        make_job(db_session, make_order(db_session), status="processing")
        result = asyncio.run(_Harness(success_payload()).sweep().run(db_session))
        assert result.total == 0
