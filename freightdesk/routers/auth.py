# routers/auth.py - OTP Authentication Endpoints
# ============================================================================

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.database import get_db
from freightdesk.schemas.auth import OtpSentResponse, RegisterRequest, SendOtpRequest, TokenResponse, VerifyOtpRequest
from freightdesk.services.auth import AuthService
from freightdesk.services.otp import OtpProvider, get_otp_provider

router = APIRouter(prefix="/auth", tags=["Auth"])


def get_auth_service(db: AsyncSession = Depends(get_db), otp_provider: OtpProvider = Depends(get_otp_provider)) -> AuthService:
    return AuthService(db, otp_provider)


@router.post("/send-otp", response_model=OtpSentResponse)
async def send_otp(request: SendOtpRequest, service: AuthService = Depends(get_auth_service)):
    return await service.send_otp(request.mobile_number)


@router.post("/verify-otp", response_model=TokenResponse)
async def verify_otp(request: VerifyOtpRequest, service: AuthService = Depends(get_auth_service)):
    """Returns a token for known users, otherwise next=REGISTER."""
    return await service.verify_otp(request.mobile_number, request.otp)


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    return await service.register(request.mobile_number, request.name, request.state)
