"""
Tests for periodic job registration and best-effort steps
"""

import pytest

from privacyflow.config import settings
from privacyflow.scheduler import PROCESS_JOBS_ID, RETENTION_JOB_ID, schedule_jobs, scheduler
from privacyflow.utils.best_effort import best_effort


@pytest.fixture
def clean_scheduler():
    scheduler.remove_all_jobs()
    yield scheduler
    scheduler.remove_all_jobs()


class TestScheduleJobs:
    """Test which jobs get registered"""

    def test_nothing_scheduled_when_disabled(self, clean_scheduler, monkeypatch):
        monkeypatch.setattr(settings, "jobs_enabled", False)
        monkeypatch.setattr(settings, "retention_enabled", False)

        assert schedule_jobs() == []

    def test_enabled_jobs_are_registered(self, clean_scheduler, monkeypatch):
        monkeypatch.setattr(settings, "jobs_enabled", True)
        monkeypatch.setattr(settings, "retention_enabled", True)

        ids = {job.id for job in schedule_jobs()}

        assert ids == {PROCESS_JOBS_ID, RETENTION_JOB_ID}

    def test_only_retention(self, clean_scheduler, monkeypatch):
        monkeypatch.setattr(settings, "jobs_enabled", False)
        monkeypatch.setattr(settings, "retention_enabled", True)

        assert [job.id for job in schedule_jobs()] == [RETENTION_JOB_ID]


class TestBestEffort:
    """Test failure capture for side steps"""

    @pytest.mark.asyncio
    async def test_success_carries_value(self):
        async def action(x):
            return x * 2

        step = await best_effort("double", action, 21)

        assert step.ok is True
        assert step.value == 42

    @pytest.mark.asyncio
    async def test_failure_is_captured(self):
        async def action():
            raise ConnectionError("session store unavailable")

        step = await best_effort("invalidate_sessions", action)

        assert step.ok is False
        assert step.error == "session store unavailable"
