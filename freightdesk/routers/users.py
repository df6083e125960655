# routers/users.py - User Endpoints
# ============================================================================

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.database import get_db
from freightdesk.schemas.auth import UpdateConsent, UserResponse
from freightdesk.services.users import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, db: AsyncSession = Depends(get_db)):
    return await UserService(db).get(user_id)


@router.patch("/{user_id}/consent", response_model=UserResponse)
async def update_consent(user_id: UUID, request: UpdateConsent, db: AsyncSession = Depends(get_db)):
    return await UserService(db).update_consent(user_id, request.consent_text)
