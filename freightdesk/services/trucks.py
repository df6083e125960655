# services/trucks.py - Truck Registry
# ============================================================================

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.exceptions import NotFoundError
from freightdesk.models.truck import UNKNOWN_CONTACT, UNKNOWN_NAME, Truck

logger = logging.getLogger(__name__)


class TruckService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_number(self, truck_number: str) -> Optional[Truck]:
        result = await self.db.execute(select(Truck).where(Truck.truck_number == truck_number))
        return result.scalar_one_or_none()

    async def get_or_404(self, truck_number: str) -> Truck:
        truck = await self.get_by_number(truck_number)
        if not truck:
            raise NotFoundError(f"Truck with number {truck_number} not found")
        return truck

    async def list(self) -> List[Truck]:
        result = await self.db.execute(select(Truck).order_by(Truck.created_at.desc()))
        return list(result.scalars().all())

    async def resolve_or_create(self, truck_number: str) -> Truck:
        """Find a truck by number, creating it with placeholder contacts.

        Flushes only; the caller owns the commit.
        """
        truck = await self.get_by_number(truck_number)
        if truck:
            return truck

        truck = Truck(
            truck_number=truck_number,
            owner_name=UNKNOWN_NAME,
            owner_contact_number=UNKNOWN_CONTACT,
            driver_name=UNKNOWN_NAME,
            driver_contact_number=UNKNOWN_CONTACT,
            claim_count=0,
        )
        self.db.add(truck)
        await self.db.flush()
        logger.info(f"🚚 Created truck {truck_number} with placeholder contacts")
        return truck

    async def register_claim(self, truck_id) -> None:
        """Record one claim event against a truck.

        Every path that opens a claim goes through here. The increment is done
        in SQL so concurrent claims do not overwrite each other.
        """
        await self.db.execute(
            update(Truck)
            .where(Truck.id == truck_id)
            .values(claim_count=Truck.claim_count + 1)
        )
        logger.info(f"📈 Claim registered for truck {truck_id}")
