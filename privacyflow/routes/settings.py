from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow.auth import get_active_user
from privacyflow.database import get_db
from privacyflow.models.user import User
from privacyflow.schemas import UserSettingsResponse, UserSettingsUpdate
from privacyflow.services import settings_service

router = APIRouter(prefix="/user/settings", tags=["User Settings"])


@router.get("", response_model=UserSettingsResponse)
async def get_settings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    return await settings_service.get_user_settings(current_user.id, db)


@router.patch("", response_model=UserSettingsResponse)
async def update_settings(
    body: UserSettingsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    return await settings_service.update_retention_window(current_user.id, body.data_retention_days, db)
