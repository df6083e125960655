# ============================================================================
# services/claim_requests.py - Claim Lifecycle
# ============================================================================

import logging
from typing import Any, Dict, List, Optional, Sequence

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from freightdesk.models.claim_request import ClaimRequest, ClaimStatus
from freightdesk.models.invoice import Invoice
from freightdesk.models.truck import Truck
from freightdesk.models.user import User
from freightdesk.schemas.claim_request import ClaimRequestFilter, DamageForm, UpdateClaimStatus
from freightdesk.services.storage import StorageService
from freightdesk.services.trucks import TruckService
from freightdesk.tasks.queue import JobQueue

logger = logging.getLogger(__name__)

SUPPORTING_MEDIA_FOLDER = "claim-requests/supporting-media"


class ClaimRequestService:
    """Claims are opened against a truck's latest invoice and then moved
    through operator-driven statuses. Any status may follow any other."""

    def __init__(self, db: AsyncSession, queue: JobQueue, storage: StorageService):
        self.db = db
        self.queue = queue
        self.storage = storage
        self.trucks = TruckService(db)

    async def create_claim_by_truck(self, truck_number: str) -> ClaimRequest:
        # One transaction: a failure at any step leaves claim_count untouched
        truck = await self.trucks.get_or_404(truck_number)

        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.truck_id == truck.id)
            .order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
            .limit(1)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError(f"No invoice found for truck {truck_number}")
        invoice_number = invoice.invoice_number

        existing = await self.db.execute(select(ClaimRequest.id).where(ClaimRequest.invoice_id == invoice.id))
        if existing.scalar_one_or_none():
            raise ConflictError(f"Claim request already exists for invoice {invoice_number}")

        await self.trucks.register_claim(truck.id)
        invoice.is_claim = True
        claim = ClaimRequest(invoice_id=invoice.id, status=ClaimStatus.PENDING, supported_media=[])
        self.db.add(claim)

        try:
            await self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent claim on the same invoice; rollback expires `invoice`
            await self.db.rollback()
            raise ConflictError(f"Claim request already exists for invoice {invoice_number}") from e

        logger.info(f"📝 Claim {claim.id} opened for invoice {invoice_number} (truck {truck_number})")
        return await self.find_one(claim.id)

    async def update_status(self, claim_request_id, update: UpdateClaimStatus) -> ClaimRequest:
        claim = await self.find_one(claim_request_id)

        if update.status == ClaimStatus.SURVEYOR_ASSIGNED and not (update.surveyor_name and update.surveyor_contact):
            raise InvalidInputError("Surveyor name and contact are required when assigning a surveyor")

        claim.status = update.status
        if update.surveyor_name:
            claim.surveyor_name = update.surveyor_name
        if update.surveyor_contact:
            claim.surveyor_contact = update.surveyor_contact
        if update.notes:
            claim.notes = update.notes

        await self.db.commit()
        logger.info(f"🔄 Claim {claim.id} -> {update.status.value}")
        return await self.find_one(claim.id)

    async def upload_supporting_media(self, claim_request_id, files: Optional[Sequence[UploadFile]]) -> ClaimRequest:
        claim = await self.find_one(claim_request_id)

        if not files:
            raise InvalidInputError("No files provided")

        urls = await self.storage.upload_multiple(files, SUPPORTING_MEDIA_FOLDER)
        # Append-only, order preserved, duplicates kept
        claim.supported_media = list(claim.supported_media or []) + urls

        await self.db.commit()
        logger.info(f"📎 Added {len(urls)} media files to claim {claim.id}")
        return await self.find_one(claim.id)

    async def create_damage_form_and_queue_pdf(self, claim_request_id, form: DamageForm) -> Dict[str, Any]:
        claim = await self.find_one(claim_request_id)

        invoice = claim.invoice
        if not invoice:
            raise InvalidInputError(f"Claim request {claim_request_id} has no linked invoice")

        payload = {
            "claim_request_id": str(claim.id),
            "invoice_number": invoice.invoice_number,
            "invoice_date": invoice.invoice_date.isoformat(),
            "truck_number": invoice.truck.truck_number if invoice.truck else "",
            "user_mobile_number": invoice.user.mobile_number if invoice.user else "",
            **form.model_dump(),
        }
        await self.queue.enqueue_claim_form_pdf(payload)

        return {
            "message": "Damage certificate PDF generation queued",
            "claim_request_id": claim.id,
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _select(self):
        return select(ClaimRequest).execution_options(populate_existing=True)

    async def find_all(self, filters: Optional[ClaimRequestFilter] = None) -> List[ClaimRequest]:
        query = (
            self._select()
            .join(Invoice, ClaimRequest.invoice_id == Invoice.id)
            .outerjoin(Truck, Invoice.truck_id == Truck.id)
        )

        if filters and filters.status:
            query = query.where(ClaimRequest.status == filters.status)
        if filters and filters.invoice_id:
            query = query.where(Invoice.id == filters.invoice_id)
        if filters and filters.truck_number:
            query = query.where(Truck.truck_number.ilike(f"%{filters.truck_number}%"))

        result = await self.db.execute(query.order_by(ClaimRequest.created_at.desc()))
        return list(result.scalars().all())

    async def find_one(self, claim_request_id) -> ClaimRequest:
        result = await self.db.execute(self._select().where(ClaimRequest.id == claim_request_id))
        claim = result.scalar_one_or_none()
        if not claim:
            raise NotFoundError(f"Claim request with ID {claim_request_id} not found")
        return claim

    async def find_by_status(self, status: ClaimStatus) -> List[ClaimRequest]:
        result = await self.db.execute(
            self._select().where(ClaimRequest.status == status).order_by(ClaimRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def find_by_user_id(self, user_id) -> List[ClaimRequest]:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError(f"User with ID {user_id} not found")

        result = await self.db.execute(
            self._select()
            .join(Invoice, ClaimRequest.invoice_id == Invoice.id)
            .where(Invoice.user_id == user_id)
            .order_by(ClaimRequest.created_at.desc())
        )
        return list(result.scalars().all())
