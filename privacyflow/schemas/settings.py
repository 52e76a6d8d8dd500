from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class UserSettingsResponse(BaseModel):
    has_active_consent: bool
    consent_version: Optional[str] = None
    data_retention_days: int
    allow_data_export: bool
    pending_deletion: bool
    deletion_requested_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserSettingsUpdate(BaseModel):
    data_retention_days: int = Field(..., ge=1, le=3650, description="Days to keep conversations.")
