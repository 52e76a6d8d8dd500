from fastapi import APIRouter, Depends, Query

from privacyflow.auth import get_active_user
from privacyflow.models.user import User
from privacyflow.schemas import AuditLogResponse
from privacyflow.services.audit_service import get_user_audit_logs

router = APIRouter(prefix="/privacy", tags=["Privacy Audit"])


@router.get("/audit", response_model=AuditLogResponse)
async def list_audit_events(
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_active_user),
):
    """The user's own privacy events, newest first."""
    events = await get_user_audit_logs(current_user.id, limit=limit)
    return AuditLogResponse(events=events)
