"""
Consent Routes

- GET  /consent/text     consent text, hash and emergency contacts for a locale
- POST /consent/accept   record acceptance of the current consent text
- POST /consent/revoke   withdraw consent
- GET  /consent/history  every acceptance the user has made
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow.auth import get_active_user
from privacyflow.database import get_db
from privacyflow.models.user import User
from privacyflow.schemas import ConsentAcceptRequest, ConsentRecordResponse, ConsentRevokeResponse, ConsentTextResponse
from privacyflow.services import consent_service
from privacyflow.services.audit_service import log_consent_viewed

router = APIRouter(prefix="/consent", tags=["Consent"])

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.get("/text", response_model=ConsentTextResponse)
async def get_consent_text(
    locale: Optional[str] = Query(None, description="Falls back to the Accept-Language header, then en-GB."),
    accept_language: Optional[str] = Header(None),
    current_user: User = Depends(get_active_user),
):
    resolved = consent_service.resolve_locale(locale) if locale else consent_service.detect_locale(accept_language)
    text = consent_service.get_consent_text(resolved)

    await log_consent_viewed(current_user.id, consent_service.CURRENT_CONSENT_VERSION, resolved)

    return ConsentTextResponse(
        locale=resolved,
        version=consent_service.CURRENT_CONSENT_VERSION,
        text_hash=consent_service.text_hash(resolved),
        emergency_contacts=[
            {"name": c.name, "number": c.number, "description": c.description}
            for c in consent_service.get_emergency_contacts(resolved)
        ],
        **text.as_dict(),
    )


@router.post("/accept", response_model=ConsentRecordResponse, status_code=status.HTTP_201_CREATED)
async def accept_consent(
    body: ConsentAcceptRequest,
    request: Request,
    accept_language: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    """
    Record the user's acceptance.

    All four acknowledgements are checked again here; the stored hash is
    computed from the text for the resolved locale.
    """
    return await consent_service.accept_consent(
        current_user.id,
        db,
        consent_version=body.consent_version,
        acknowledged_ai_limitations=body.acknowledged_ai_limitations,
        confirmed_not_emergency=body.confirmed_not_emergency,
        confirmed_age_over_18=body.confirmed_age_over_18,
        accepted_terms_privacy=body.accepted_terms_privacy,
        locale=body.locale or consent_service.detect_locale(accept_language),
        consent_text_hash=body.consent_text_hash,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/revoke", response_model=ConsentRevokeResponse)
async def revoke_consent(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    previous_version = await consent_service.revoke_consent(current_user.id, db)
    return ConsentRevokeResponse(previous_version=previous_version)


@router.get("/history", response_model=list[ConsentRecordResponse])
async def consent_history(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    return await consent_service.get_consent_history(current_user.id, db)
