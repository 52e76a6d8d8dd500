"""
Tests for export requests, status and download links
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from privacyflow.exceptions import (
    ConsentRequiredError,
    ExpiredError,
    ExportNotAllowedError,
    NoFileError,
    NotFoundError,
    NotReadyError,
    RateLimitedError,
    ReauthRequiredError,
    StorageError,
)
from privacyflow.models.data_export import DataExport, ExportStatus
from privacyflow.models.privacy_audit import PrivacyAuditLog
from privacyflow.services import export_service
from privacyflow.services.export_service import get_download_url, get_export_status, request_export
from privacyflow.services.reauth_service import issue_reauth_token
from privacyflow.storage import upload_export_data
from privacyflow.utils.clock import utcnow

from utils.mock_utils import create_test_export, create_test_settings


class TestRequestExport:
    """Test export request preconditions"""

    @pytest.mark.asyncio
    async def test_queues_export(self, test_db, consented_user):
        token = issue_reauth_token(consented_user.id)

        export = await request_export(consented_user.id, test_db, token)

        assert export.status == ExportStatus.QUEUED
        assert export.user_id == consented_user.id
        result = await test_db.execute(select(PrivacyAuditLog.event).where(PrivacyAuditLog.user_id == consented_user.id))
        assert result.scalars().all() == ["export.requested"]

    @pytest.mark.asyncio
    async def test_requires_fresh_reauth(self, test_db, consented_user):
        stale = issue_reauth_token(consented_user.id, now=utcnow() - timedelta(minutes=11))
        with pytest.raises(ReauthRequiredError):
            await request_export(consented_user.id, test_db, stale)

    @pytest.mark.asyncio
    async def test_consent_checked_before_store(self, test_db, test_user, monkeypatch):
        """No consent fails before any rate-limit lookup happens"""
        latest = AsyncMock()
        monkeypatch.setattr(export_service, "_latest_export", latest)

        with pytest.raises(ConsentRequiredError):
            await request_export(test_user.id, test_db, issue_reauth_token(test_user.id))

        latest.assert_not_called()

    @pytest.mark.asyncio
    async def test_export_disabled(self, test_db, test_user):
        await create_test_settings(test_db, test_user.id, has_active_consent=True, allow_data_export=False)
        with pytest.raises(ExportNotAllowedError):
            await request_export(test_user.id, test_db, issue_reauth_token(test_user.id))

    @pytest.mark.asyncio
    async def test_cooldown_counts_from_creation(self, test_db, consented_user):
        """Second request within 24h is rate limited; it reopens after the window"""
        first_at = utcnow() - timedelta(hours=30)
        await request_export(consented_user.id, test_db, issue_reauth_token(consented_user.id, first_at), now=first_at)

        one_hour_later = first_at + timedelta(hours=1)
        with pytest.raises(RateLimitedError) as exc_info:
            await request_export(
                consented_user.id, test_db, issue_reauth_token(consented_user.id, one_hour_later), now=one_hour_later
            )
        assert exc_info.value.hours_remaining == 23
        assert "23 hours" in exc_info.value.message

        reopened = first_at + timedelta(hours=24)
        export = await request_export(
            consented_user.id, test_db, issue_reauth_token(consented_user.id, reopened), now=reopened
        )
        assert export.status == ExportStatus.QUEUED

    @pytest.mark.asyncio
    async def test_hours_remaining_rounds_up(self, test_db, consented_user):
        first_at = utcnow() - timedelta(hours=2)
        await create_test_export(test_db, consented_user.id, status=ExportStatus.FAILED, created_at=first_at)

        later = first_at + timedelta(hours=23, minutes=30)
        with pytest.raises(RateLimitedError) as exc_info:
            await request_export(consented_user.id, test_db, issue_reauth_token(consented_user.id, later), now=later)
        assert exc_info.value.hours_remaining == 1

    @pytest.mark.asyncio
    async def test_failed_export_still_counts_towards_cooldown(self, test_db, consented_user):
        await create_test_export(test_db, consented_user.id, status=ExportStatus.FAILED)
        with pytest.raises(RateLimitedError):
            await request_export(consented_user.id, test_db, issue_reauth_token(consented_user.id))


class TestGetExportStatus:
    """Test reading the latest export"""

    @pytest.mark.asyncio
    async def test_no_exports_is_empty_not_error(self, test_db, test_user):
        assert await get_export_status(test_user.id, test_db) is None

    @pytest.mark.asyncio
    async def test_returns_most_recent(self, test_db, test_user):
        now = utcnow()
        await create_test_export(test_db, test_user.id, status=ExportStatus.READY, created_at=now - timedelta(days=3))
        newest = await create_test_export(test_db, test_user.id, created_at=now)

        latest = await get_export_status(test_user.id, test_db)
        assert latest.id == newest.id


class TestGetDownloadUrl:
    """Test download link checks"""

    async def _ready_export(self, test_db, storage, user_id, **values):
        export = await create_test_export(test_db, user_id, status=ExportStatus.READY)
        path = await upload_export_data(storage, user_id, export.id, {"version": "1.0"})
        export.file_path = values.get("file_path", path)
        export.expires_at = values.get("expires_at", utcnow() + timedelta(hours=24))
        await test_db.commit()
        return export

    @pytest.mark.asyncio
    async def test_ready_export_returns_signed_url(self, test_db, storage, test_user):
        export = await self._ready_export(test_db, storage, test_user.id)

        url = await get_download_url(test_user.id, export.id, test_db, storage)

        assert url.startswith("http://test/api/v1/storage/exports/")
        assert "signature=" in url and "expires=" in url
        result = await test_db.execute(select(PrivacyAuditLog.event))
        assert result.scalars().all() == ["export.downloaded"]

    @pytest.mark.asyncio
    async def test_other_users_export_is_not_found(self, test_db, storage, test_user, other_user):
        export = await self._ready_export(test_db, storage, other_user.id)

        with pytest.raises(NotFoundError):
            await get_download_url(test_user.id, export.id, test_db, storage)

    @pytest.mark.asyncio
    async def test_unknown_export_is_not_found(self, test_db, storage, test_user):
        with pytest.raises(NotFoundError):
            await get_download_url(test_user.id, "missing", test_db, storage)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [ExportStatus.QUEUED, ExportStatus.PROCESSING, ExportStatus.FAILED])
    async def test_not_ready(self, test_db, storage, test_user, status):
        export = await create_test_export(test_db, test_user.id, status=status)

        with pytest.raises(NotReadyError) as exc_info:
            await get_download_url(test_user.id, export.id, test_db, storage)
        assert exc_info.value.current_status == status.value

    @pytest.mark.asyncio
    async def test_expired_even_if_still_marked_ready(self, test_db, storage, test_user):
        export = await self._ready_export(test_db, storage, test_user.id, expires_at=utcnow() - timedelta(minutes=1))

        with pytest.raises(ExpiredError):
            await get_download_url(test_user.id, export.id, test_db, storage)

    @pytest.mark.asyncio
    async def test_ready_without_file(self, test_db, storage, test_user):
        export = await self._ready_export(test_db, storage, test_user.id, file_path=None)

        with pytest.raises(NoFileError):
            await get_download_url(test_user.id, export.id, test_db, storage)

    @pytest.mark.asyncio
    async def test_missing_object_is_storage_error(self, test_db, storage, test_user):
        export = await self._ready_export(test_db, storage, test_user.id)
        await storage.remove([export.file_path])

        with pytest.raises(StorageError):
            await get_download_url(test_user.id, export.id, test_db, storage)

    @pytest.mark.asyncio
    async def test_does_not_modify_export(self, test_db, storage, test_user):
        export = await self._ready_export(test_db, storage, test_user.id)
        await get_download_url(test_user.id, export.id, test_db, storage)

        test_db.expire_all()
        stored = await test_db.get(DataExport, export.id)
        assert stored.status == ExportStatus.READY
