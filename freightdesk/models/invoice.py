# ============================================================================
# models/invoice.py - Invoice Database Model
# ============================================================================
import uuid
from enum import Enum

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Enum as SQLEnum, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from freightdesk.core.database import Base


class InvoiceType(str, Enum):
    SUPPLIER_INVOICE = "SUPPLIER_INVOICE"  # supplier is the seller
    BUYER_INVOICE = "BUYER_INVOICE"  # buyer is the seller

class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_number = Column(String(32), unique=True, index=True, nullable=False)
    invoice_date = Column(Date, nullable=False)
    terms = Column(String(255), nullable=True)
    invoice_type = Column(SQLEnum(InvoiceType, name="invoice_type"), nullable=False, default=InvoiceType.SUPPLIER_INVOICE)

    # Supplier
    supplier_name = Column(String(255), nullable=False)
    supplier_address = Column(JSON, nullable=False, default=list)
    place_of_supply = Column(String(255), nullable=False)

    # Buyer
    bill_to_name = Column(String(255), nullable=False)
    bill_to_address = Column(JSON, nullable=False, default=list)
    ship_to_name = Column(String(255), nullable=False)
    ship_to_address = Column(JSON, nullable=False, default=list)

    # Item
    product_name = Column(String(255), nullable=False)
    hsn_code = Column(String(255), nullable=True)
    quantity = Column(Numeric(10, 2), nullable=False)
    rate = Column(Numeric(10, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    premium_amount = Column(Numeric(12, 2), nullable=False, default=0)

    # Ownership / transport
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    truck_id = Column(Uuid, ForeignKey("trucks.id", ondelete="SET NULL"), nullable=True)
    owner_name = Column(String(255), nullable=True)
    vehicle_number = Column(String(255), nullable=True)

    # Weighbridge
    weighment_slip_note = Column(Text, nullable=True)
    weighment_slip_urls = Column(JSON, nullable=True)

    # Insurance / claim note
    is_claim = Column(Boolean, nullable=False, default=False)
    claim_details = Column(Text, nullable=True)

    # Generated by the invoice-pdf worker
    pdf_url = Column(Text, nullable=True)

    is_verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    whatsapp_sent = Column(Boolean, nullable=False, default=False)
    whatsapp_sent_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="invoices", lazy="selectin")
    truck = relationship("Truck", back_populates="invoices", lazy="selectin")
    claim_request = relationship("ClaimRequest", back_populates="invoice", uselist=False, passive_deletes=True)
