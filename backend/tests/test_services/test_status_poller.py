"""Tests for the status poller: payload interpretation and endpoint fallback."""
import asyncio

import httpx

from factories import json_response, mock_http, success_payload
from musiclovely.schemas.common import JobStatus, PollStatus
from musiclovely.services.status_poller import StatusPoller, interpret_status_payload
from musiclovely.services.suno_client import SunoClient


def _poller(handler, max_retries=3):
    client = SunoClient(
        api_key="test-key",
        base_url="https://suno.test",
        client=mock_http(handler),
        max_retries=max_retries,
        retry_delay=0,
    )
    return StatusPoller(client)


class TestInterpretStatusPayload:
    def test_failed_status_is_error_even_with_items(self):
        payload = success_payload()
        payload["data"]["status"] = "FAILED"
        result = interpret_status_payload("task-1", payload)
        assert result.status == PollStatus.ERROR
        assert result.job_status == JobStatus.FAILED
        assert result.audio_url is None

    def test_provider_failure_codes_are_errors(self):
        for status in ("CREATE_TASK_FAILED", "GENERATE_AUDIO_FAILED", "sensitive_word_error"):
            result = interpret_status_payload("task-1", {"code": 200, "data": {"status": status}})
            assert result.status == PollStatus.ERROR

    def test_non_200_code_without_success_is_error(self):
        result = interpret_status_payload("task-1", {"code": 400, "msg": "Invalid taskId"})
        assert result.status == PollStatus.ERROR
        assert result.error == "Invalid taskId"

    def test_success_uses_first_item_id(self):
        result = interpret_status_payload("task-1", success_payload())
        assert result.status == PollStatus.COMPLETE
        assert result.audio_id == "clip-a"
        assert result.clip_id == "clip-a"
        assert result.audio_url == "https://cdn.example.com/a.mp3"
        assert result.duration == 201.5
        assert result.progress == 100

    def test_id_fallback_order(self):
        items = [{"musicId": "music-7", "audioId": "audio-9", "audio_url": "https://cdn.example.com/x.mp3"}]
        result = interpret_status_payload("task-1", success_payload(items=items))
        assert result.audio_id == "music-7"
        assert result.clip_id == "music-7"

    def test_duration_defaults_to_180(self):
        items = [{"id": "clip-z", "audio_url": "https://cdn.example.com/z.mp3"}]
        result = interpret_status_payload("task-1", success_payload(items=items))
        assert result.duration == 180.0

    def test_success_without_items_keeps_processing(self):
        result = interpret_status_payload("task-1", success_payload(items=[]))
        assert result.status == PollStatus.PROCESSING
        assert "waiting for songs" in result.message

    def test_legacy_musics_shape(self):
        payload = {"code": 200, "data": {"status": "complete", "musics": [{"clipId": "c-1", "AudioUrl": "https://x.test/1.mp3"}]}}
        result = interpret_status_payload("task-1", payload)
        assert result.status == PollStatus.COMPLETE
        assert result.clip_id == "c-1"

    def test_intermediate_statuses(self):
        result = interpret_status_payload("task-1", {"code": 200, "data": {"status": "TEXT_SUCCESS"}})
        assert result.status == PollStatus.PROCESSING
        assert result.job_status == JobStatus.TEXT_READY
        assert result.progress == 30

    def test_unknown_status_uses_reported_progress(self):
        result = interpret_status_payload("task-1", {"code": 200, "data": {"status": "RUNNING", "progress": "45%"}})
        assert result.status == PollStatus.PROCESSING
        assert result.progress == 45


class TestStatusPoller:
    def test_empty_task_id(self):
        result = asyncio.run(StatusPoller(SunoClient(api_key="k")).poll("  "))
        assert result.status == PollStatus.ERROR
        assert result.error == "task_id is required"

    def test_falls_back_to_next_candidate_on_404(self):
        seen = []

        def handler(request: httpx.Request):
            seen.append(str(request.url))
            if "taskId" in request.url.params:
                return httpx.Response(404)
            return json_response(200, success_payload())

        result = asyncio.run(_poller(handler).poll("task-1"))
        assert result.status == PollStatus.COMPLETE
        assert seen == [
            "https://suno.test/api/v1/generate/record-info?taskId=task-1",
            "https://suno.test/api/v1/generate/record-info?id=task-1",
        ]

    def test_retries_transient_errors_per_candidate(self):
        calls = []

        def handler(request: httpx.Request):
            calls.append(str(request.url))
            if len(calls) < 4:
                return httpx.Response(503)
            return json_response(200, {"code": 200, "data": {"status": "PENDING"}})

        result = asyncio.run(_poller(handler).poll("task-1"))
        assert result.status == PollStatus.PROCESSING
        assert result.progress == 10
        assert calls == ["https://suno.test/api/v1/generate/record-info?taskId=task-1"] * 4

    def test_moves_on_after_three_retries(self):
        calls = []

        def handler(request: httpx.Request):
            calls.append(str(request.url))
            if "taskId" in request.url.params:
                return httpx.Response(503)
            return json_response(200, success_payload())

        result = asyncio.run(_poller(handler).poll("task-1"))
        assert result.status == PollStatus.COMPLETE
        assert calls == (
            ["https://suno.test/api/v1/generate/record-info?taskId=task-1"] * 4
            + ["https://suno.test/api/v1/generate/record-info?id=task-1"]
        )

    def test_client_errors_other_than_404_are_retried(self):
        calls = []

        def handler(request: httpx.Request):
            calls.append(str(request.url))
            if len(calls) == 1:
                return httpx.Response(400)
            return json_response(200, success_payload())

        result = asyncio.run(_poller(handler).poll("task-1"))
        assert result.status == PollStatus.COMPLETE
        assert calls == ["https://suno.test/api/v1/generate/record-info?taskId=task-1"] * 2

    def test_405_skips_without_retry(self):
        calls = []

        def handler(request: httpx.Request):
            calls.append(str(request.url))
            if len(calls) == 1:
                return httpx.Response(405)
            return json_response(200, success_payload())

        asyncio.run(_poller(handler).poll("task-1"))
        assert calls[1] == "https://suno.test/api/v1/generate/record-info?id=task-1"

    def test_invalid_json_skips_candidate(self):
        calls = []

        def handler(request: httpx.Request):
            calls.append(str(request.url))
            if len(calls) == 1:
                return httpx.Response(200, content=b"<html>oops</html>")
            return json_response(200, {"code": 200, "data": {"status": "FIRST_SUCCESS"}})

        result = asyncio.run(_poller(handler).poll("task-1"))
        assert result.job_status == JobStatus.FIRST_READY
        assert len(calls) == 2

    def test_all_candidates_failing_is_error(self):
        result = asyncio.run(_poller(lambda request: httpx.Response(404)).poll("task-1"))
        assert result.status == PollStatus.ERROR
        assert "No status endpoint answered" in result.error
        assert result.success is False

    def test_to_response_carries_success_flag(self):
        result = asyncio.run(_poller(lambda r: json_response(200, success_payload())).poll("task-1"))
        body = result.to_response()
        assert body["success"] is True
        assert body["status"] == "complete"
        assert body["audio_id"] == "clip-a"
