# services/auth.py - OTP Login and Registration
# ============================================================================

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.config import settings
from freightdesk.core.exceptions import ConflictError, InvalidInputError
from freightdesk.models.user import OtpVerification, User
from freightdesk.services.otp import OtpProvider

logger = logging.getLogger(__name__)

NEXT_LOGIN_VERIFY = "LOGIN_VERIFY"
NEXT_REGISTER = "REGISTER"
NEXT_HOME = "HOME"


class AuthService:
    def __init__(self, db: AsyncSession, otp_provider: OtpProvider):
        self.db = db
        self.otp_provider = otp_provider

    async def _user_by_mobile(self, mobile_number: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.mobile_number == mobile_number))
        return result.scalar_one_or_none()

    async def send_otp(self, mobile_number: str) -> dict:
        user = await self._user_by_mobile(mobile_number)

        session_id = await self.otp_provider.send(mobile_number)
        self.db.add(OtpVerification(mobile_number=mobile_number, provider_session_id=session_id, is_used=False))
        await self.db.commit()

        return {"message": "OTP sent", "next": NEXT_LOGIN_VERIFY if user else NEXT_REGISTER}

    async def verify_otp(self, mobile_number: str, otp: str) -> dict:
        result = await self.db.execute(
            select(OtpVerification)
            .where(OtpVerification.mobile_number == mobile_number, OtpVerification.is_used.is_(False))
            .order_by(OtpVerification.created_at.desc())
            .limit(1)
        )
        record = result.scalar_one_or_none()
        if not record:
            raise InvalidInputError("OTP session not found")

        if not await self.otp_provider.verify(record.provider_session_id, otp):
            raise InvalidInputError("Invalid or expired OTP")

        record.is_used = True
        await self.db.commit()

        user = await self._user_by_mobile(mobile_number)
        if not user:
            return {"next": NEXT_REGISTER, "mobile_number": mobile_number}

        logger.info(f"🔑 User {user.id} logged in")
        return self._token_response(user)

    async def register(self, mobile_number: str, name: str, state: Optional[str] = None) -> dict:
        if await self._user_by_mobile(mobile_number):
            raise ConflictError("User already exists")

        verified = await self.db.execute(
            select(OtpVerification.id)
            .where(OtpVerification.mobile_number == mobile_number, OtpVerification.is_used.is_(True))
            .limit(1)
        )
        if verified.scalar_one_or_none() is None:
            raise InvalidInputError("Verify the OTP before registering")

        user = User(mobile_number=mobile_number, name=name, state=state)
        self.db.add(user)
        await self.db.commit()
        logger.info(f"👤 Registered user {user.id}")

        return self._token_response(user)

    def _token_response(self, user: User) -> dict:
        return {
            "next": NEXT_HOME,
            "access_token": self._create_access_token({"sub": str(user.id)}),
            "token_type": "bearer",
            "user": {
                "id": user.id,
                "mobile_number": user.mobile_number,
                "name": user.name,
                "state": user.state,
            },
        }

    def _create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create JWT access token"""
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm="HS256")
