"""Tests for Celery task wiring and error write-back."""
from musiclovely.celery_app import celery_app
from musiclovely.tasks.generation import friendly_error


class TestFriendlyError:
    def test_auth(self):
        assert friendly_error(Exception("SUNO_API_KEY is not configured")).startswith("Authentication failed")

    def test_rate_limit(self):
        assert "Rate limit" in friendly_error(Exception("suno generate returned HTTP 429"))

    def test_timeout(self):
        assert "timed out" in friendly_error(Exception("ReadTimeout: timed out"))

    def test_default(self):
        assert friendly_error(ValueError("bad payload")) == "Generation request failed: bad payload"


class TestCeleryConfig:
    def test_tasks_registered(self):
        import musiclovely.tasks.notifications  # noqa: F401
        import musiclovely.tasks.orders  # noqa: F401
        import musiclovely.tasks.releases  # noqa: F401

        for name in (
            "generation.submit_generation",
            "generation.poll_processing_jobs",
            "notifications.send_music_ready_email",
            "orders.check_pending_orders",
            "releases.release_due_songs",
        ):
            assert name in celery_app.tasks

    def test_beat_schedule(self):
        schedule = celery_app.conf.beat_schedule
        assert schedule["poll-processing-jobs"]["task"] == "generation.poll_processing_jobs"
        assert schedule["check-pending-orders"]["task"] == "orders.check_pending_orders"
        assert schedule["release-due-songs"]["task"] == "releases.release_due_songs"
