"""
Tests for privacy audit logging
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from privacyflow import database
from privacyflow.models.privacy_audit import AuditEvent, PrivacyAuditLog
from privacyflow.services.audit_service import (
    get_user_audit_logs,
    log_audit_event,
    log_delete_completed,
    log_delete_requested,
    log_export_failed,
    sanitize_details,
)


class TestSanitizeDetails:
    """Test the metadata allow-list"""

    def test_keeps_allowed_scalars(self):
        assert sanitize_details({"export_id": "abc", "locale": "en-GB"}) == {"export_id": "abc", "locale": "en-GB"}

    def test_drops_unknown_keys(self):
        """Conversation content must never reach the audit log"""
        assert sanitize_details({"export_id": "abc", "transcript": "I feel..."}) == {"export_id": "abc"}

    def test_drops_nested_values(self):
        assert sanitize_details({"error": {"stack": "..."}}) is None

    def test_empty_details(self):
        assert sanitize_details(None) is None
        assert sanitize_details({}) is None


class TestLogAuditEvent:
    """Test writing audit events"""

    @pytest.mark.asyncio
    async def test_event_is_persisted(self, test_db, test_user):
        await log_export_failed(test_user.id, "export-1", "disk full")

        result = await test_db.execute(select(PrivacyAuditLog))
        event = result.scalars().one()
        assert event.user_id == test_user.id
        assert event.event == "export.failed"
        assert event.details == {"export_id": "export-1", "error": "disk full"}

    @pytest.mark.asyncio
    async def test_delete_completed_has_no_user(self, test_db):
        await log_delete_completed("request-1")

        result = await test_db.execute(select(PrivacyAuditLog))
        event = result.scalars().one()
        assert event.user_id is None
        assert event.details == {"request_id": "request-1"}

    @pytest.mark.asyncio
    async def test_delete_requested_defaults_reason(self, test_db, test_user):
        await log_delete_requested(test_user.id, "request-1")

        result = await test_db.execute(select(PrivacyAuditLog))
        assert result.scalars().one().details["reason"] == "Not specified"

    @pytest.mark.asyncio
    async def test_store_failure_is_swallowed(self, test_db, test_user, monkeypatch):
        """An audit failure never propagates to the caller"""
        broken = MagicMock(side_effect=RuntimeError("connection refused"))
        monkeypatch.setattr(database, "AsyncSessionLocal", broken)

        await log_audit_event(test_user.id, AuditEvent.CONSENT_ACCEPTED, {"consent_version": "v1.0"})

        broken.assert_called_once()

    @pytest.mark.asyncio
    async def test_unknown_event_is_swallowed(self, test_db, test_user):
        await log_audit_event(test_user.id, "consent.shared", None)

        result = await test_db.execute(select(PrivacyAuditLog))
        assert result.scalars().all() == []


class TestGetUserAuditLogs:
    """Test reading a user's audit trail"""

    @pytest.mark.asyncio
    async def test_returns_only_own_events(self, test_db, test_user, other_user):
        await log_audit_event(test_user.id, AuditEvent.CONSENT_ACCEPTED, {"consent_version": "v1.0"})
        await log_audit_event(other_user.id, AuditEvent.CONSENT_ACCEPTED, {"consent_version": "v1.0"})

        events = await get_user_audit_logs(test_user.id)
        assert len(events) == 1
        assert events[0].user_id == test_user.id

    @pytest.mark.asyncio
    async def test_respects_limit(self, test_db, test_user):
        for _ in range(5):
            await log_audit_event(test_user.id, AuditEvent.REAUTH_SUCCESS, {"method": "password"})

        assert len(await get_user_audit_logs(test_user.id, limit=3)) == 3
