# ============================================================================
# models/truck.py - Truck Database Model
# ============================================================================
import uuid

from sqlalchemy import Column, DateTime, Integer, String, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from freightdesk.core.database import Base

# Placeholder contact data for trucks created from an invoice
UNKNOWN_NAME = "Unknown"
UNKNOWN_CONTACT = "0000000000"

class Truck(Base):
    __tablename__ = "trucks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    truck_number = Column(String(32), unique=True, index=True, nullable=False)
    owner_name = Column(String(255), nullable=False, default=UNKNOWN_NAME)
    owner_contact_number = Column(String(20), nullable=False, default=UNKNOWN_CONTACT)
    driver_name = Column(String(255), nullable=False, default=UNKNOWN_NAME)
    driver_contact_number = Column(String(20), nullable=False, default=UNKNOWN_CONTACT)
    claim_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    invoices = relationship("Invoice", back_populates="truck")
