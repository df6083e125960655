# schemas/auth.py - Authentication Schemas
# ============================================================================
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID

MOBILE_PATTERN = r"^[6-9]\d{9}$"  # Indian mobile number

class SendOtpRequest(BaseModel):
    mobile_number: str = Field(..., pattern=MOBILE_PATTERN)

class VerifyOtpRequest(BaseModel):
    mobile_number: str = Field(..., pattern=MOBILE_PATTERN)
    otp: str = Field(..., min_length=4, max_length=6)

class RegisterRequest(BaseModel):
    mobile_number: str = Field(..., pattern=MOBILE_PATTERN)
    name: str = Field(..., min_length=1)
    state: Optional[str] = None

class OtpSentResponse(BaseModel):
    message: str
    next: str  # LOGIN_VERIFY or REGISTER

class UserData(BaseModel):
    id: UUID
    mobile_number: str
    name: Optional[str]
    state: Optional[str]

class TokenResponse(BaseModel):
    next: str = "HOME"
    access_token: Optional[str] = None
    token_type: str = "bearer"
    user: Optional[UserData] = None
    mobile_number: Optional[str] = None

class UserResponse(BaseModel):
    id: UUID
    mobile_number: str
    name: Optional[str]
    state: Optional[str]
    consent_text: Optional[str]
    consent_accepted_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True

class UpdateConsent(BaseModel):
    consent_text: str = Field(..., min_length=1)
