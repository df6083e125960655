# routers/trucks.py - Truck and Live Tracking Endpoints
# ============================================================================

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.database import get_db
from freightdesk.schemas.truck import TruckLocationResponse, TruckResponse
from freightdesk.services.truck_tracker import TruckTrackerService, get_truck_tracker
from freightdesk.services.trucks import TruckService

router = APIRouter(prefix="/trucks", tags=["Trucks"])


@router.get("", response_model=List[TruckResponse])
async def list_trucks(db: AsyncSession = Depends(get_db)):
    return await TruckService(db).list()


@router.get("/track/{vehicle_number}", response_model=TruckLocationResponse)
async def track_truck(vehicle_number: str, tracker: TruckTrackerService = Depends(get_truck_tracker)):
    """Latest GPS position; an unknown vehicle or one without sessions is reported offline."""
    return await tracker.get_truck_location(vehicle_number)


@router.get("/{truck_number}", response_model=TruckResponse)
async def get_truck(truck_number: str, db: AsyncSession = Depends(get_db)):
    return await TruckService(db).get_or_404(truck_number)
