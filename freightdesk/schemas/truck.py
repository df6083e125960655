# schemas/truck.py - Truck and Live Location Schemas
# ============================================================================

from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from uuid import UUID


class TruckResponse(BaseModel):
    id: UUID
    truck_number: str
    owner_name: str
    owner_contact_number: str
    driver_name: str
    driver_contact_number: str
    claim_count: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LocationResponse(BaseModel):
    lat: float
    lng: float
    speed: Optional[float] = None
    speed_kmh: Optional[str] = None
    heading: Optional[float] = None
    timestamp: int
    timestamp_formatted: str
    place_name: Optional[str] = None


class TruckLocationResponse(BaseModel):
    vehicle_number: str
    vehicle_id: Optional[str] = None
    session_id: Optional[str] = None
    status: str  # online / offline
    last_seen: int = 0
    last_seen_formatted: str
    location: Optional[LocationResponse] = None
    message: Optional[str] = None
