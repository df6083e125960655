# tasks/pdf_tasks.py - Celery Tasks for PDF Generation
# ============================================================================

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import select

from freightdesk.core.config import settings
from freightdesk.core.database import worker_session
from freightdesk.models.claim_request import ClaimRequest
from freightdesk.models.invoice import Invoice
from freightdesk.schemas.claim_request import DamageForm
from freightdesk.services.pdf_service import DamageCertificate, InvoiceDocument, PdfService
from freightdesk.services.storage import StorageService
from freightdesk.tasks.queue import GENERATE_CLAIM_FORM_PDF, GENERATE_INVOICE_PDF, celery_app

logger = logging.getLogger(__name__)

INVOICE_PDF_FOLDER = "invoices"
CLAIM_FORM_FOLDER = "claim-forms"


async def process_invoice_pdf(
    invoice_id: str,
    session_factory=worker_session,
    pdf_service: Optional[PdfService] = None,
    storage: Optional[StorageService] = None,
) -> Optional[str]:
    """Render the invoice PDF, store it and write its URL on the invoice.

    Returns the URL, or None when the invoice no longer exists. Render and
    upload errors propagate so the queue retries the job.
    """
    async with session_factory() as db:
        result = await db.execute(
            select(Invoice).where(Invoice.id == uuid.UUID(str(invoice_id))).execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            logger.warning(f"Invoice {invoice_id} no longer exists, skipping PDF job")
            return None

        pdf_service = pdf_service or PdfService()
        storage = storage or StorageService()

        pdf_bytes = await pdf_service.render_invoice(
            InvoiceDocument.from_invoice(invoice),
            invoice.weighment_slip_urls or [],
            settings.STAMP_URL,
        )
        pdf_url = await storage.upload_pdf(pdf_bytes, f"invoice-{invoice.invoice_number}", INVOICE_PDF_FOLDER)

        invoice.pdf_url = pdf_url
        await db.commit()

        logger.info(f"✅ Invoice PDF ready for {invoice.invoice_number}: {pdf_url}")
        return pdf_url


async def process_claim_form_pdf(
    payload: Dict[str, Any],
    session_factory=worker_session,
    pdf_service: Optional[PdfService] = None,
    storage: Optional[StorageService] = None,
) -> Optional[str]:
    """Render the damage certificate for a claim and store its URL.

    Invoice number, date, truck and mobile come from the current rows, not
    from the copies taken when the job was queued.
    """
    claim_request_id = payload["claim_request_id"]
    form = DamageForm.model_validate(payload)

    async with session_factory() as db:
        result = await db.execute(
            select(ClaimRequest)
            .where(ClaimRequest.id == uuid.UUID(str(claim_request_id)))
            .execution_options(populate_existing=True)
        )
        claim = result.scalar_one_or_none()
        if not claim or not claim.invoice:
            logger.warning(f"Claim request {claim_request_id} no longer exists, skipping damage certificate job")
            return None

        invoice = claim.invoice
        certificate = DamageCertificate(
            invoice_number=invoice.invoice_number,
            invoice_date=invoice.invoice_date,
            truck_number=invoice.truck.truck_number if invoice.truck else "",
            user_mobile_number=invoice.user.mobile_number if invoice.user else "",
            **form.model_dump(),
        )

        pdf_service = pdf_service or PdfService()
        storage = storage or StorageService()

        pdf_bytes = await pdf_service.render_damage_certificate(certificate)
        claim_form_url = await storage.upload_pdf(
            pdf_bytes, f"damage-certificate-{invoice.invoice_number}", CLAIM_FORM_FOLDER
        )

        claim.claim_form_url = claim_form_url
        await db.commit()

        logger.info(f"✅ Damage certificate ready for claim {claim_request_id}: {claim_form_url}")
        return claim_form_url


@celery_app.task(
    name=GENERATE_INVOICE_PDF,
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=settings.JOB_MAX_RETRIES,
)
def generate_invoice_pdf(self, invoice_id: str, **_):
    logger.info(f"🔄 Generating invoice PDF for {invoice_id} (attempt {self.request.retries + 1})")
    return asyncio.run(process_invoice_pdf(invoice_id))


@celery_app.task(
    name=GENERATE_CLAIM_FORM_PDF,
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=settings.JOB_MAX_RETRIES,
)
def generate_claim_form_pdf(self, **payload):
    logger.info(f"🔄 Generating damage certificate for claim {payload.get('claim_request_id')} (attempt {self.request.retries + 1})")
    return asyncio.run(process_claim_form_pdf(payload))
