# models/vehicle_condition.py - Vehicle Condition Database Model
# ============================================================================

import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Uuid
from sqlalchemy.sql import func

from freightdesk.core.database import Base

class VehicleCondition(Base):
    __tablename__ = "vehicle_conditions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    vehicle_number = Column(String(20), unique=True, index=True, nullable=False)
    permit_status = Column(Boolean, nullable=False, default=False)
    driver_license = Column(Boolean, nullable=False, default=False)
    vehicle_condition = Column(Boolean, nullable=False, default=False)
    challan_clear = Column(Boolean, nullable=False, default=False)
    emi_clear = Column(Boolean, nullable=False, default=False)
    fitness_clear = Column(Boolean, nullable=False, default=False)

    # Written when a verification is computed, never on upsert
    verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    CHECK_FIELDS = (
        "permit_status",
        "driver_license",
        "vehicle_condition",
        "challan_clear",
        "emi_clear",
        "fitness_clear",
    )

    def checks_pass(self) -> bool:
        return all(getattr(self, field) for field in self.CHECK_FIELDS)
