# models/user.py - User and OTP Database Models
# ============================================================================

import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from freightdesk.core.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    mobile_number = Column(String(15), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    state = Column(String(255), nullable=True)
    consent_text = Column(Text, nullable=True)
    consent_accepted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    invoices = relationship("Invoice", back_populates="user")

class OtpVerification(Base):
    __tablename__ = "otp_verifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    mobile_number = Column(String(15), index=True, nullable=False)
    provider_session_id = Column(String(255), nullable=False)
    is_used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
