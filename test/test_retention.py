"""
Tests for the data retention job
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from privacyflow.jobs.retention import enforce_data_retention
from privacyflow.models.data_export import DataExport, ExportStatus
from privacyflow.models.therapy import ActionItem, SessionSummary, TherapySession
from privacyflow.storage import upload_export_data
from privacyflow.utils.clock import utcnow

from utils.mock_utils import create_test_conversation, create_test_export, create_test_settings


class TestEnforceDataRetention:
    """Test conversation and export cleanup"""

    @pytest.mark.asyncio
    async def test_expired_export_file_is_removed(self, test_db, storage, test_user):
        now = utcnow()
        export = await create_test_export(
            test_db, test_user.id, status=ExportStatus.READY, expires_at=now - timedelta(hours=1)
        )
        export.file_path = await upload_export_data(storage, test_user.id, export.id, {})
        await test_db.commit()

        outcome = await enforce_data_retention(storage=storage, now=now)

        assert outcome.expired_exports == 1
        assert await storage.list(f"exports/{test_user.id}") == []
        test_db.expire_all()
        stored = await test_db.get(DataExport, export.id)
        assert stored.file_path is None
        assert stored.status == ExportStatus.READY

    @pytest.mark.asyncio
    async def test_unexpired_export_is_kept(self, test_db, storage, test_user):
        now = utcnow()
        export = await create_test_export(
            test_db, test_user.id, status=ExportStatus.READY, expires_at=now + timedelta(hours=1)
        )
        export.file_path = await upload_export_data(storage, test_user.id, export.id, {})
        await test_db.commit()

        outcome = await enforce_data_retention(storage=storage, now=now)

        assert outcome.expired_exports == 0
        assert len(await storage.list(f"exports/{test_user.id}")) == 1

    @pytest.mark.asyncio
    async def test_old_conversations_follow_user_window(self, test_db, storage, test_user, other_user):
        now = utcnow()
        await create_test_settings(test_db, test_user.id, data_retention_days=30)
        old = await create_test_conversation(test_db, test_user.id, started_at=now - timedelta(days=45))
        recent = await create_test_conversation(test_db, test_user.id, started_at=now - timedelta(days=5))
        # No settings row: the default one-year window applies
        kept = await create_test_conversation(test_db, other_user.id, started_at=now - timedelta(days=45))

        outcome = await enforce_data_retention(storage=storage, now=now)

        assert outcome.sessions_deleted == 1
        test_db.expire_all()
        remaining = await test_db.execute(select(TherapySession.id))
        assert set(remaining.scalars().all()) == {recent.id, kept.id}

        orphans = await test_db.execute(select(SessionSummary).where(SessionSummary.session_id == old.id))
        assert orphans.scalars().all() == []
        items = await test_db.execute(select(ActionItem).where(ActionItem.session_id == old.id))
        assert items.scalars().all() == []

    @pytest.mark.asyncio
    async def test_default_window_removes_year_old_conversations(self, test_db, storage, test_user):
        now = utcnow()
        await create_test_conversation(test_db, test_user.id, started_at=now - timedelta(days=400))

        outcome = await enforce_data_retention(storage=storage, now=now)

        assert outcome.sessions_deleted == 1
