# schemas/vehicle_condition.py - Vehicle Condition Schemas
# ============================================================================

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from uuid import UUID


class VehicleConditionUpsert(BaseModel):
    vehicle_number: str = Field(..., min_length=1, examples=["BR01AB1234"])
    permit_status: bool
    driver_license: bool
    vehicle_condition: bool
    challan_clear: bool
    emi_clear: bool
    fitness_clear: bool


class VehicleConditionResponse(BaseModel):
    id: UUID
    vehicle_number: str
    permit_status: bool
    driver_license: bool
    vehicle_condition: bool
    challan_clear: bool
    emi_clear: bool
    fitness_clear: bool
    verified: bool
    verified_at: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class VerificationDetails(BaseModel):
    permit: str
    driver_license: str
    vehicle_condition: str
    challan: str
    emi: str
    fitness: str
    claim: str


class VehicleVerification(BaseModel):
    vehicle_number: str
    details: VerificationDetails
    verified: bool
    reason: Optional[str] = None
