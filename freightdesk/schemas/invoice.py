# schemas/invoice.py - Invoice Schemas
# ============================================================================

from pydantic import BaseModel, field_validator, model_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Union
from uuid import UUID

from freightdesk.models.invoice import InvoiceType
from freightdesk.schemas.truck import TruckResponse


def _as_lines(value):
    # multipart forms send a single address line as a plain string
    if value is None or isinstance(value, list):
        return value
    return [value]


class InvoiceCreate(BaseModel):
    user_id: UUID
    invoice_date: date
    terms: Optional[str] = None
    invoice_type: InvoiceType = InvoiceType.SUPPLIER_INVOICE

    supplier_name: str
    supplier_address: List[str]
    place_of_supply: str

    bill_to_name: str
    bill_to_address: List[str]
    ship_to_name: str
    ship_to_address: List[str]

    product_name: Union[str, List[str]]
    hsn_code: Optional[str] = None
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    premium_amount: Decimal = Decimal("0")

    truck_number: Optional[str] = None
    vehicle_number: Optional[str] = None
    owner_name: Optional[str] = None
    weighment_slip_note: Optional[str] = None

    is_claim: bool = False
    claim_details: Optional[str] = None

    @field_validator("supplier_address", "bill_to_address", "ship_to_address", mode="before")
    @classmethod
    def address_as_lines(cls, value):
        return _as_lines(value)


class InvoiceUpdate(BaseModel):
    # Accepted so clients may echo it back; never applied
    invoice_number: Optional[str] = None

    invoice_date: Optional[date] = None
    terms: Optional[str] = None
    invoice_type: Optional[InvoiceType] = None

    supplier_name: Optional[str] = None
    supplier_address: Optional[List[str]] = None
    place_of_supply: Optional[str] = None

    bill_to_name: Optional[str] = None
    bill_to_address: Optional[List[str]] = None
    ship_to_name: Optional[str] = None
    ship_to_address: Optional[List[str]] = None

    product_name: Optional[Union[str, List[str]]] = None
    hsn_code: Optional[str] = None
    quantity: Optional[Decimal] = None
    rate: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    premium_amount: Optional[Decimal] = None

    truck_number: Optional[str] = None
    vehicle_number: Optional[str] = None
    owner_name: Optional[str] = None
    weighment_slip_note: Optional[str] = None

    is_claim: Optional[bool] = None
    claim_details: Optional[str] = None

    @field_validator("supplier_address", "bill_to_address", "ship_to_address", mode="before")
    @classmethod
    def address_as_lines(cls, value):
        return _as_lines(value)


class InvoiceFilter(BaseModel):
    invoice_type: Optional[InvoiceType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    supplier_name: Optional[str] = None
    buyer_name: Optional[str] = None
    user_id: Optional[UUID] = None


class InvoiceExportRequest(BaseModel):
    invoice_type: Optional[InvoiceType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    invoice_ids: Optional[List[UUID]] = None

    @model_validator(mode="after")
    def check_date_order(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class InvoiceResponse(BaseModel):
    id: UUID
    invoice_number: str
    invoice_date: date
    terms: Optional[str]
    invoice_type: InvoiceType
    supplier_name: str
    supplier_address: List[str]
    place_of_supply: str
    bill_to_name: str
    bill_to_address: List[str]
    ship_to_name: str
    ship_to_address: List[str]
    product_name: str
    hsn_code: Optional[str]
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    premium_amount: Decimal
    user_id: UUID
    truck_id: Optional[UUID]
    truck: Optional[TruckResponse] = None
    owner_name: Optional[str]
    vehicle_number: Optional[str]
    weighment_slip_note: Optional[str]
    weighment_slip_urls: Optional[List[str]]
    is_claim: bool
    claim_details: Optional[str]
    pdf_url: Optional[str]
    is_verified: bool
    verified_at: Optional[datetime]
    whatsapp_sent: bool
    whatsapp_sent_at: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True
