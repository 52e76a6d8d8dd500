from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class Token(BaseModel):
    access_token: str = Field(..., min_length=32, description="Access token string.")
    token_type: str = Field(..., pattern="^Bearer$", description="Type of the token, typically 'Bearer'.")
    expires_in: Optional[int] = Field(None, description="Time in seconds before token expires.")


class ReauthRequest(BaseModel):
    password: str = Field(..., min_length=1, description="The user's current password.")


class ReauthResponse(BaseModel):
    reauth_token: str = Field(..., description="Send back in the X-Reauth-Token header on sensitive actions.")
    expires_at: datetime
