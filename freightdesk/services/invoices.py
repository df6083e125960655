# ============================================================================
# services/invoices.py - Invoice Lifecycle
# ============================================================================

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Union

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.exceptions import ConflictError, InvalidInputError, NotFoundError, UpstreamError
from freightdesk.models.invoice import Invoice
from freightdesk.models.user import User
from freightdesk.schemas.invoice import InvoiceCreate, InvoiceExportRequest, InvoiceFilter, InvoiceUpdate
from freightdesk.services.excel_generator import ExcelGenerator
from freightdesk.services.notifications import WhatsAppNotifier
from freightdesk.services.sequence import InvoiceNumberGenerator
from freightdesk.services.storage import StorageService
from freightdesk.services.trucks import TruckService
from freightdesk.tasks.queue import JobQueue

logger = logging.getLogger(__name__)

WEIGHMENT_SLIP_FOLDER = "weighment-slips"


def normalize_product_name(value: Union[str, List[str]]) -> str:
    """An invoice carries exactly one product; a one-element list is unwrapped."""
    if isinstance(value, str):
        return value
    if len(value) != 1:
        raise InvalidInputError(f"Exactly one product name is required, got {len(value)}")
    return value[0]


def _is_number_collision(error: IntegrityError) -> bool:
    return "invoice_number" in str(error.orig)


class InvoiceService:
    def __init__(
        self,
        db: AsyncSession,
        queue: JobQueue,
        storage: StorageService,
        notifier: Optional[WhatsAppNotifier] = None,
        numbers: Optional[InvoiceNumberGenerator] = None,
    ):
        self.db = db
        self.queue = queue
        self.storage = storage
        self.notifier = notifier
        self.numbers = numbers or InvoiceNumberGenerator(db)
        self.trucks = TruckService(db)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create(self, payload: InvoiceCreate, files: Optional[Sequence[UploadFile]] = None, year: Optional[int] = None) -> Invoice:
        user = await self.db.get(User, payload.user_id)
        if not user:
            raise NotFoundError(f"User with ID {payload.user_id} not found")

        product_name = normalize_product_name(payload.product_name)

        truck_id = None
        owner_name = payload.owner_name
        if payload.truck_number:
            truck = await self.trucks.resolve_or_create(payload.truck_number)
            truck_id = truck.id
            owner_name = owner_name or truck.owner_name
            # Trucks are committed on their own so a failed invoice insert keeps them
            await self.db.commit()

        slip_urls = None
        if files:
            slip_urls = await self.storage.upload_multiple(files, WEIGHMENT_SLIP_FOLDER) or None

        fields = payload.model_dump(exclude={"truck_number", "product_name", "owner_name"})
        invoice = Invoice(
            **fields,
            product_name=product_name,
            owner_name=owner_name,
            truck_id=truck_id,
            weighment_slip_urls=slip_urls,
        )

        invoice.invoice_number = await self.numbers.next_invoice_number(year)
        try:
            await self._insert(invoice, truck_id)
        except IntegrityError as e:
            await self.db.rollback()
            if not _is_number_collision(e):
                raise
            # Single retry with a fresh number; a second collision is a conflict
            logger.warning(f"⚠️ Invoice number {invoice.invoice_number} already taken, retrying once")
            invoice.invoice_number = await self.numbers.next_invoice_number(year)
            try:
                await self._insert(invoice, truck_id)
            except IntegrityError as retry_error:
                await self.db.rollback()
                if not _is_number_collision(retry_error):
                    raise
                raise ConflictError(f"Invoice number {invoice.invoice_number} already exists") from retry_error

        logger.info(f"🧾 Created invoice {invoice.invoice_number} ({invoice.id})")
        await self.queue.enqueue_invoice_pdf(invoice.id)
        return await self.find_one(invoice.id)

    async def _insert(self, invoice: Invoice, truck_id) -> None:
        self.db.add(invoice)
        if invoice.is_claim and truck_id:
            await self.trucks.register_claim(truck_id)
        await self.db.commit()

    async def update(self, invoice_id, payload: InvoiceUpdate, files: Optional[Sequence[UploadFile]] = None) -> Invoice:
        invoice = await self.find_one(invoice_id)

        # invoice_number is immutable once issued
        changes = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"invoice_number", "truck_number"})

        if payload.truck_number:
            truck = await self.trucks.resolve_or_create(payload.truck_number)
            invoice.truck_id = truck.id

        if "product_name" in changes:
            changes["product_name"] = normalize_product_name(changes["product_name"])

        if files:
            new_urls = await self.storage.upload_multiple(files, WEIGHMENT_SLIP_FOLDER)
            invoice.weighment_slip_urls = list(invoice.weighment_slip_urls or []) + new_urls

        for field, value in changes.items():
            setattr(invoice, field, value)

        await self.db.commit()
        logger.info(f"✏️ Updated invoice {invoice.invoice_number}")

        # The previous pdf_url stays until the worker overwrites it
        await self.queue.enqueue_invoice_pdf(invoice.id)
        return await self.find_one(invoice.id)

    async def remove(self, invoice_id) -> None:
        invoice = await self.find_one(invoice_id)
        # Stored slips and PDFs are left in place
        await self.db.delete(invoice)
        await self.db.commit()
        logger.info(f"🗑️ Deleted invoice {invoice.invoice_number}")

    async def verify_invoice(self, invoice_id) -> Invoice:
        invoice = await self.find_one(invoice_id)
        invoice.is_verified = True
        invoice.verified_at = datetime.now(timezone.utc)
        await self.db.commit()
        logger.info(f"✅ Invoice {invoice.invoice_number} verified")

        phone = invoice.user.mobile_number if invoice.user else None
        if self.notifier and invoice.pdf_url and phone:
            try:
                await self.notifier.send_invoice_verified(
                    phone=phone,
                    supplier_name=invoice.supplier_name,
                    invoice_number=invoice.invoice_number,
                    pdf_url=invoice.pdf_url,
                )
            except UpstreamError as e:
                # Verification stands even when the message could not be sent
                logger.error(f"❌ WhatsApp notification failed for {invoice.invoice_number}: {e}")
            else:
                invoice.whatsapp_sent = True
                invoice.whatsapp_sent_at = datetime.now(timezone.utc)
                await self.db.commit()
        else:
            logger.info(f"WhatsApp skipped for {invoice.invoice_number} (pdf ready: {bool(invoice.pdf_url)})")

        return await self.find_one(invoice.id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _select(self):
        return select(Invoice).execution_options(populate_existing=True)

    async def find_all(self) -> List[Invoice]:
        result = await self.db.execute(self._select().order_by(Invoice.created_at.desc()))
        return list(result.scalars().all())

    async def find_one(self, invoice_id) -> Invoice:
        result = await self.db.execute(self._select().where(Invoice.id == invoice_id))
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError(f"Invoice with ID {invoice_id} not found")
        return invoice

    async def find_by_user_id(self, user_id) -> List[Invoice]:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError(f"User with ID {user_id} not found")

        result = await self.db.execute(
            self._select().where(Invoice.user_id == user_id).order_by(Invoice.created_at.desc())
        )
        return list(result.scalars().all())

    async def find_by_invoice_number(self, invoice_number: str) -> Optional[Invoice]:
        result = await self.db.execute(self._select().where(Invoice.invoice_number == invoice_number))
        return result.scalar_one_or_none()

    async def filter_invoices(self, filters: InvoiceFilter) -> List[Invoice]:
        query = self._select()

        if filters.invoice_type:
            query = query.where(Invoice.invoice_type == filters.invoice_type)
        if filters.start_date:
            query = query.where(Invoice.created_at >= filters.start_date)
        if filters.end_date:
            query = query.where(Invoice.created_at <= filters.end_date)
        if filters.supplier_name:
            query = query.where(Invoice.supplier_name.ilike(f"%{filters.supplier_name}%"))
        if filters.buyer_name:
            query = query.where(Invoice.bill_to_name.ilike(f"%{filters.buyer_name}%"))
        if filters.user_id:
            query = query.where(Invoice.user_id == filters.user_id)

        result = await self.db.execute(query.order_by(Invoice.created_at.desc()))
        return list(result.scalars().all())

    async def export_invoices_to_excel(self, request: InvoiceExportRequest) -> bytes:
        query = self._select()

        if request.invoice_ids:
            query = query.where(Invoice.id.in_(request.invoice_ids))
        elif request.start_date and request.end_date:
            query = query.where(Invoice.created_at >= request.start_date, Invoice.created_at <= request.end_date)
        else:
            raise InvalidInputError("Either invoice_ids or both start_date and end_date are required")

        if request.invoice_type:
            query = query.where(Invoice.invoice_type == request.invoice_type)

        result = await self.db.execute(query.order_by(Invoice.created_at.desc()))
        invoices = list(result.scalars().all())
        logger.info(f"📊 Exporting {len(invoices)} invoices")
        return ExcelGenerator().create_invoice_export(invoices)
