# ============================================================================
# models/claim_request.py - Claim Request Database Model
# ============================================================================
import uuid
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Enum as SQLEnum, ForeignKey, Numeric, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from freightdesk.core.database import Base


class ClaimStatus(str, Enum):
    PENDING = "PENDING"
    SURVEYOR_ASSIGNED = "SURVEYOR_ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SETTLED = "SETTLED"
    CLOSED = "CLOSED"

class ClaimRequest(Base):
    __tablename__ = "claim_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # unique: at most one claim per invoice
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="CASCADE"), unique=True, nullable=False)
    status = Column(SQLEnum(ClaimStatus, name="claim_status"), nullable=False, default=ClaimStatus.PENDING)
    supported_media = Column(JSON, nullable=False, default=list)
    claim_form_url = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    claim_amount = Column(Numeric(12, 2), nullable=True)
    surveyor_name = Column(Text, nullable=True)
    surveyor_contact = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    invoice = relationship("Invoice", back_populates="claim_request", lazy="selectin")
