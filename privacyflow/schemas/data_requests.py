"""
Export and Deletion Request Schemas
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from privacyflow.models.data_export import ExportStatus
from privacyflow.models.deletion_request import DeletionStatus


class ExportResponse(BaseModel):
    id: str
    status: ExportStatus
    error: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ExportStatusResponse(BaseModel):
    export: Optional[ExportResponse] = None


class DownloadResponse(BaseModel):
    url: str
    expires_in: int


class DeletionCreate(BaseModel):
    confirmation_phrase: str = Field(..., description='Must be exactly "DELETE".')
    reason: Optional[str] = Field(None, max_length=1000)


class DeletionConfirm(BaseModel):
    request_id: str


class DeletionCancel(BaseModel):
    request_id: str


class DeletionResponse(BaseModel):
    id: str
    status: DeletionStatus
    reason: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DeletionStatusResponse(BaseModel):
    deletion: Optional[DeletionResponse] = None
