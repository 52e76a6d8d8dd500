"""
Tests for account deletion requests
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from privacyflow.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ReauthRequiredError,
    UnauthenticatedError,
    ValidationError,
)
from privacyflow.models.deletion_request import DeletionRequest, DeletionStatus
from privacyflow.models.privacy_audit import PrivacyAuditLog
from privacyflow.services.deletion_service import (
    cancel_deletion,
    confirm_deletion,
    get_deletion_status,
    request_deletion,
)
from privacyflow.services.reauth_service import issue_reauth_token
from privacyflow.services.settings_service import get_user_settings
from privacyflow.utils.clock import utcnow
from privacyflow.utils.session import get_session_manager

from utils.mock_utils import create_test_deletion
from utils.mocks import MockIdentityProvider


class TestRequestDeletion:
    """Test creating deletion requests"""

    @pytest.mark.asyncio
    async def test_creates_queued_request_and_blocks_account(self, test_db, test_user, identity):
        request = await request_deletion(
            test_user.id, test_db, identity, issue_reauth_token(test_user.id), "DELETE", reason="Moving on"
        )

        assert request.status == DeletionStatus.QUEUED
        assert request.reason == "Moving on"
        settings_row = await get_user_settings(test_user.id, test_db)
        assert settings_row.pending_deletion is True
        assert settings_row.deletion_requested_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("phrase", ["delete", "DELETE ", "", None])
    async def test_phrase_must_match_exactly(self, test_db, test_user, identity, phrase):
        with pytest.raises(ValidationError):
            await request_deletion(test_user.id, test_db, identity, issue_reauth_token(test_user.id), phrase)

        result = await test_db.execute(select(DeletionRequest))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_requires_fresh_reauth(self, test_db, test_user, identity):
        stale = issue_reauth_token(test_user.id, now=utcnow() - timedelta(minutes=15))
        with pytest.raises(ReauthRequiredError):
            await request_deletion(test_user.id, test_db, identity, stale, "DELETE")

    @pytest.mark.asyncio
    async def test_conflict_carries_existing_id(self, test_db, test_user, identity):
        existing = await create_test_deletion(test_db, test_user.id, status=DeletionStatus.PROCESSING)

        with pytest.raises(ConflictError) as exc_info:
            await request_deletion(test_user.id, test_db, identity, issue_reauth_token(test_user.id), "DELETE")

        assert exc_info.value.request_id == existing.id

    @pytest.mark.asyncio
    async def test_finished_requests_do_not_conflict(self, test_db, test_user, identity):
        await create_test_deletion(test_db, test_user.id, status=DeletionStatus.CANCELED)
        await create_test_deletion(test_db, test_user.id, status=DeletionStatus.FAILED)

        request = await request_deletion(test_user.id, test_db, identity, issue_reauth_token(test_user.id), "DELETE")
        assert request.status == DeletionStatus.QUEUED

    @pytest.mark.asyncio
    async def test_login_sessions_are_dropped(self, test_db, test_user, identity):
        manager = await get_session_manager()
        await manager.create_session(test_user.id, test_user.email)

        await request_deletion(test_user.id, test_db, identity, issue_reauth_token(test_user.id), "DELETE")

        assert identity.invalidated == [test_user.id]
        assert await manager.delete_all_user_sessions(test_user.id) == 0

    @pytest.mark.asyncio
    async def test_session_invalidation_failure_still_succeeds(self, test_db, test_user):
        """The request stands even when sessions cannot be dropped"""
        identity = MockIdentityProvider(fail_invalidate=True)

        request = await request_deletion(test_user.id, test_db, identity, issue_reauth_token(test_user.id), "DELETE")

        assert request.status == DeletionStatus.QUEUED
        assert (await get_user_settings(test_user.id, test_db)).pending_deletion is True

    @pytest.mark.asyncio
    async def test_request_is_audited(self, test_db, test_user, identity):
        await request_deletion(test_user.id, test_db, identity, issue_reauth_token(test_user.id), "DELETE")

        result = await test_db.execute(select(PrivacyAuditLog))
        event = result.scalars().one()
        assert event.event == "delete.requested"
        assert event.details["reason"] == "Not specified"


class TestConfirmDeletion:
    """Test expediting a queued request"""

    @pytest.mark.asyncio
    async def test_queued_moves_to_processing(self, test_db, test_user):
        queued = await create_test_deletion(test_db, test_user.id)

        request = await confirm_deletion(test_user.id, queued.id, test_db, issue_reauth_token(test_user.id))

        assert request.status == DeletionStatus.PROCESSING
        assert request.started_at is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status", [DeletionStatus.PROCESSING, DeletionStatus.COMPLETED, DeletionStatus.CANCELED, DeletionStatus.FAILED]
    )
    async def test_non_queued_is_invalid_state(self, test_db, test_user, status):
        request = await create_test_deletion(test_db, test_user.id, status=status)

        with pytest.raises(InvalidStateError) as exc_info:
            await confirm_deletion(test_user.id, request.id, test_db, issue_reauth_token(test_user.id))

        assert exc_info.value.current_status == status.value
        assert status.value in exc_info.value.message

    @pytest.mark.asyncio
    async def test_other_users_request_is_not_found(self, test_db, test_user, other_user):
        request = await create_test_deletion(test_db, other_user.id)

        with pytest.raises(NotFoundError):
            await confirm_deletion(test_user.id, request.id, test_db, issue_reauth_token(test_user.id))

    @pytest.mark.asyncio
    async def test_requires_fresh_reauth(self, test_db, test_user):
        request = await create_test_deletion(test_db, test_user.id)

        with pytest.raises(ReauthRequiredError):
            await confirm_deletion(test_user.id, request.id, test_db, None)


class TestCancelDeletion:
    """Test canceling a queued request"""

    @pytest.mark.asyncio
    async def test_cancel_queued_unblocks_account(self, test_db, test_user, identity):
        request = await request_deletion(test_user.id, test_db, identity, issue_reauth_token(test_user.id), "DELETE")

        canceled = await cancel_deletion(test_user.id, request.id, test_db)

        assert canceled.status == DeletionStatus.CANCELED
        settings_row = await get_user_settings(test_user.id, test_db)
        assert settings_row.pending_deletion is False
        assert settings_row.deletion_requested_at is None

    @pytest.mark.asyncio
    async def test_cancel_is_audited(self, test_db, test_user):
        request = await create_test_deletion(test_db, test_user.id)
        await cancel_deletion(test_user.id, request.id, test_db)

        result = await test_db.execute(select(PrivacyAuditLog.event))
        assert result.scalars().all() == ["delete.canceled"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [DeletionStatus.PROCESSING, DeletionStatus.COMPLETED, DeletionStatus.FAILED])
    async def test_cancel_past_queued_is_not_found(self, test_db, test_user, status):
        request = await create_test_deletion(test_db, test_user.id, status=status)

        with pytest.raises(NotFoundError):
            await cancel_deletion(test_user.id, request.id, test_db)

        test_db.expire_all()
        assert (await test_db.get(DeletionRequest, request.id)).status == status

    @pytest.mark.asyncio
    async def test_cancel_other_users_request_is_not_found(self, test_db, test_user, other_user):
        request = await create_test_deletion(test_db, other_user.id)

        with pytest.raises(NotFoundError):
            await cancel_deletion(test_user.id, request.id, test_db)

    @pytest.mark.asyncio
    async def test_cancel_requires_user(self, test_db, test_user):
        request = await create_test_deletion(test_db, test_user.id)

        with pytest.raises(UnauthenticatedError):
            await cancel_deletion(None, request.id, test_db)


class TestGetDeletionStatus:
    """Test reading the latest deletion request"""

    @pytest.mark.asyncio
    async def test_no_requests(self, test_db, test_user):
        assert await get_deletion_status(test_user.id, test_db) is None

    @pytest.mark.asyncio
    async def test_returns_most_recent(self, test_db, test_user):
        now = utcnow()
        await create_test_deletion(test_db, test_user.id, status=DeletionStatus.CANCELED, created_at=now - timedelta(days=1))
        latest = await create_test_deletion(test_db, test_user.id, created_at=now)

        assert (await get_deletion_status(test_user.id, test_db)).id == latest.id
