# routers/vehicle_condition.py - Vehicle Condition Endpoints
# ============================================================================

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.database import get_db
from freightdesk.schemas.vehicle_condition import VehicleConditionResponse, VehicleConditionUpsert, VehicleVerification
from freightdesk.services.vehicle_condition import VehicleConditionService

router = APIRouter(prefix="/vehicle-condition", tags=["Vehicle Condition"])


@router.post("", response_model=VehicleConditionResponse)
async def upsert_vehicle_condition(payload: VehicleConditionUpsert, db: AsyncSession = Depends(get_db)):
    return await VehicleConditionService(db).upsert(payload)


@router.get("/verify/{vehicle_number}", response_model=VehicleVerification)
async def verify_vehicle(vehicle_number: str, db: AsyncSession = Depends(get_db)):
    return await VehicleConditionService(db).verify_vehicle(vehicle_number)


@router.get("/whatsapp/{vehicle_number}")
async def whatsapp_message(vehicle_number: str, db: AsyncSession = Depends(get_db)):
    """Bilingual (English / Hindi) verification summary for WhatsApp."""
    message = await VehicleConditionService(db).get_whatsapp_message(vehicle_number)
    return {"vehicle_number": vehicle_number, "message": message}
