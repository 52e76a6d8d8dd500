"""
Consent Schemas
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CheckboxOut(BaseModel):
    id: str
    label: str


class EmergencyContactOut(BaseModel):
    name: str
    number: str
    description: str


class ConsentTextResponse(BaseModel):
    locale: str
    version: str
    text_hash: str
    title: str
    bullets: list[str]
    checkboxes: list[CheckboxOut]
    continue_label: str
    cancel_label: str
    emergency_contacts: list[EmergencyContactOut]


class ConsentAcceptRequest(BaseModel):
    """Acknowledgements are re-validated on the server regardless of what the client checked."""

    consent_version: str = Field(..., min_length=1, max_length=20)
    acknowledged_ai_limitations: bool = False
    confirmed_not_emergency: bool = False
    confirmed_age_over_18: bool = False
    accepted_terms_privacy: bool = False
    locale: Optional[str] = None
    consent_text_hash: Optional[str] = Field(None, max_length=71)


class ConsentRecordResponse(BaseModel):
    id: str
    consent_version: str
    consent_text_hash: str
    locale: str
    created_at: datetime

    class Config:
        from_attributes = True


class ConsentRevokeResponse(BaseModel):
    ok: bool = True
    previous_version: str
