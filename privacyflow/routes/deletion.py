"""
Account Deletion Routes (right to be forgotten)

Requesting and confirming a deletion need a fresh re-authentication passed
in the ``X-Reauth-Token`` header. Once a request exists the account is
blocked everywhere except on these routes, so the user can still follow or
cancel it.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow.auth import get_active_user, get_current_user, get_reauth_token
from privacyflow.database import get_db
from privacyflow.identity import IdentityProvider, get_identity_provider
from privacyflow.models.user import User
from privacyflow.schemas import (
    DeletionCancel,
    DeletionConfirm,
    DeletionCreate,
    DeletionResponse,
    DeletionStatusResponse,
)
from privacyflow.services import deletion_service

router = APIRouter(prefix="/data/delete", tags=["Account Deletion"])

logger = logging.getLogger(__name__)


@router.post("/request", response_model=DeletionResponse, status_code=status.HTTP_202_ACCEPTED)
async def request_account_deletion(
    body: DeletionCreate,
    reauth_token: Optional[str] = Depends(get_reauth_token),
    db: AsyncSession = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
    current_user: User = Depends(get_active_user),
):
    """
    Schedule the account for permanent deletion.

    The account is blocked immediately and all login sessions are ended.
    Erasure happens in the background.
    """
    return await deletion_service.request_deletion(
        current_user.id,
        db,
        identity,
        reauth_token,
        confirmation_phrase=body.confirmation_phrase,
        reason=body.reason,
    )


@router.post("/confirm", response_model=DeletionResponse)
async def confirm_account_deletion(
    body: DeletionConfirm,
    reauth_token: Optional[str] = Depends(get_reauth_token),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Skip the waiting period; the next job run performs the erasure."""
    return await deletion_service.confirm_deletion(current_user.id, body.request_id, db, reauth_token)


@router.get("/status", response_model=DeletionStatusResponse)
async def deletion_status(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    deletion = await deletion_service.get_deletion_status(current_user.id, db)
    return DeletionStatusResponse(deletion=deletion)


@router.post("/cancel", response_model=DeletionResponse)
async def cancel_account_deletion(
    body: DeletionCancel,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await deletion_service.cancel_deletion(current_user.id, body.request_id, db)
