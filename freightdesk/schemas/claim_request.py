# schemas/claim_request.py - Claim Request Schemas
# ============================================================================

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from freightdesk.models.claim_request import ClaimStatus
from freightdesk.schemas.invoice import InvoiceResponse


class CreateClaimByTruck(BaseModel):
    truck_number: str = Field(..., min_length=1, examples=["MH12AB1234"])


class UpdateClaimStatus(BaseModel):
    status: ClaimStatus
    surveyor_name: Optional[str] = None  # required for SURVEYOR_ASSIGNED
    surveyor_contact: Optional[str] = None  # required for SURVEYOR_ASSIGNED
    notes: Optional[str] = None


class ClaimRequestFilter(BaseModel):
    status: Optional[ClaimStatus] = None
    invoice_id: Optional[UUID] = None
    truck_number: Optional[str] = None  # partial, case-insensitive


class DamageForm(BaseModel):
    damage_certificate_date: str = Field(..., min_length=1, examples=["2026-01-09"])
    transport_receipt_memo_no: str = Field(..., min_length=1, examples=["Memo No 416"])
    transport_receipt_date: str = Field(..., min_length=1, examples=["2026-01-07"])
    loaded_weight_kg: float = Field(..., examples=[15400])
    product_name: str = Field(..., min_length=1, examples=["Sweet Potato"])
    from_party: str = Field(..., min_length=1)
    for_party: str = Field(..., min_length=1)
    accident_date: str = Field(..., min_length=1)
    accident_location: str = Field(..., min_length=1)
    accident_description: str = Field(..., min_length=1)
    agreed_damage_amount_number: Optional[float] = None
    agreed_damage_amount_words: Optional[str] = None
    authorized_signatory_name: Optional[str] = None


class DamageFormAccepted(BaseModel):
    message: str
    claim_request_id: UUID


class ClaimRequestResponse(BaseModel):
    id: UUID
    invoice_id: UUID
    invoice: Optional[InvoiceResponse] = None
    status: ClaimStatus
    supported_media: List[str]
    claim_form_url: Optional[str]
    description: Optional[str]
    claim_amount: Optional[Decimal]
    surveyor_name: Optional[str]
    surveyor_contact: Optional[str]
    notes: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True
