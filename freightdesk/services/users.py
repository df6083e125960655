# services/users.py - User Profile
# ============================================================================

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.exceptions import NotFoundError
from freightdesk.models.user import User

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError(f"User with ID {user_id} not found")
        return user

    async def update_consent(self, user_id, consent_text: str) -> User:
        user = await self.get(user_id)
        user.consent_text = consent_text
        user.consent_accepted_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"📝 Consent recorded for user {user.id}")
        return user
