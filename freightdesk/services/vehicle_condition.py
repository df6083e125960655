# services/vehicle_condition.py - Vehicle Condition Checks and Verification
# ============================================================================

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.exceptions import InvalidInputError, NotFoundError
from freightdesk.models.vehicle_condition import VehicleCondition
from freightdesk.schemas.vehicle_condition import VehicleConditionUpsert, VehicleVerification, VerificationDetails
from freightdesk.services.trucks import TruckService

logger = logging.getLogger(__name__)

NO_TRUCK_RECORD = "Auto Verified (No Truck Record)"


def normalize_vehicle_number(value: str) -> str:
    """'mh 12-ab 1234' -> 'MH12AB1234'"""
    return re.sub(r"[^A-Za-z0-9]", "", value or "").upper()


class VehicleConditionService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.trucks = TruckService(db)

    async def _get(self, vehicle_number: str):
        result = await self.db.execute(
            select(VehicleCondition)
            .where(VehicleCondition.vehicle_number == vehicle_number)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert(self, payload: VehicleConditionUpsert) -> VehicleCondition:
        vehicle_number = normalize_vehicle_number(payload.vehicle_number)
        if not vehicle_number:
            raise InvalidInputError("Vehicle number is required")

        record = await self._get(vehicle_number)
        if not record:
            record = VehicleCondition(vehicle_number=vehicle_number)
            self.db.add(record)

        for field in VehicleCondition.CHECK_FIELDS:
            setattr(record, field, getattr(payload, field))

        await self.db.commit()
        logger.info(f"🚛 Vehicle condition saved for {vehicle_number}")
        return await self._get(vehicle_number)

    async def verify_vehicle(self, vehicle_number: str) -> VehicleVerification:
        normalized = normalize_vehicle_number(vehicle_number)

        condition = await self._get(normalized)
        if not condition:
            raise NotFoundError(f"Vehicle condition not found for {normalized}")

        # A missing truck record means no claim history
        truck = await self.trucks.get_by_number(normalized)
        has_claim = bool(truck and truck.claim_count > 0)
        checks_pass = condition.checks_pass()
        verified = checks_pass and not has_claim

        condition.verified = verified
        condition.verified_at = datetime.now(timezone.utc)
        await self.db.commit()

        if truck is None:
            claim = NO_TRUCK_RECORD
        else:
            claim = "Claim Found" if has_claim else "No Claim"

        reason = None
        if not verified:
            reason = "Truck has previous claim" if has_claim else "One or more vehicle checks failed"

        return VehicleVerification(
            vehicle_number=normalized,
            details=VerificationDetails(
                permit="Active" if condition.permit_status else "Inactive",
                driver_license="Available" if condition.driver_license else "Not Available",
                vehicle_condition="OK" if condition.vehicle_condition else "Not OK",
                challan="No Challan" if condition.challan_clear else "Challan Found",
                emi="Paid" if condition.emi_clear else "Due",
                fitness="Fit" if condition.fitness_clear else "Unfit",
                claim=claim,
            ),
            verified=verified,
            reason=reason,
        )

    async def get_whatsapp_message(self, vehicle_number: str) -> str:
        data = await self.verify_vehicle(vehicle_number)
        d = data.details
        mark = "✅" if data.verified else "❌"

        lines = [
            f"Permit – {d.permit}",
            f"परमिट – {'एक्टिव' if d.permit == 'Active' else 'निष्क्रिय'}",
            "",
            f"Driver License – {d.driver_license}",
            f"ड्राइवर लाइसेंस – {'उपलब्ध' if d.driver_license == 'Available' else 'अनुपलब्ध'}",
            "",
            f"Vehicle Condition – {d.vehicle_condition}",
            f"गाड़ी की स्थिति – {'ठीक' if d.vehicle_condition == 'OK' else 'खराब'}",
            "",
            f"Challan – {d.challan}",
            f"चालान – {'कोई चालान नहीं' if d.challan == 'No Challan' else 'चालान मौजूद'}",
            "",
            f"EMI – {d.emi}",
            f"ईएमआई – {'समय पर भुगतान' if d.emi == 'Paid' else 'बकाया'}",
            "",
            f"Vehicle Fitness – {d.fitness}",
            f"गाड़ी फिटनेस – {'फिट' if d.fitness == 'Fit' else 'अनफिट'}",
            "",
            f"Claim History – {d.claim}",
            f"क्लेम इतिहास – {'कोई क्लेम नहीं' if d.claim != 'Claim Found' else 'क्लेम दर्ज है'}",
            "",
            f"{mark} You {'can take' if data.verified else 'cannot take'} **MandiPlus Verified Vehicle**",
            f"{mark} आप **MandiPlus सत्यापित वाहन**{'' if data.verified else ' नहीं'} ले सकते हैं",
        ]
        return "\n".join(lines)
