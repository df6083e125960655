# ============================================================================
# routers/invoices.py - Invoice Endpoints
# ============================================================================

from datetime import datetime, timezone
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.database import get_db
from freightdesk.core.exceptions import NotFoundError
from freightdesk.routers.forms import read_body, validate_body
from freightdesk.schemas.invoice import InvoiceCreate, InvoiceExportRequest, InvoiceFilter, InvoiceResponse, InvoiceUpdate
from freightdesk.services.invoices import InvoiceService
from freightdesk.services.notifications import WhatsAppNotifier, get_notifier
from freightdesk.services.storage import StorageService, get_storage_service
from freightdesk.tasks.queue import JobQueue, get_job_queue

router = APIRouter(prefix="/invoices", tags=["Invoices"])

WEIGHMENT_SLIPS_FIELD = "weighment_slips"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_invoice_service(
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    storage: StorageService = Depends(get_storage_service),
    notifier: WhatsAppNotifier = Depends(get_notifier),
) -> InvoiceService:
    return InvoiceService(db, queue, storage, notifier)


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(request: Request, service: InvoiceService = Depends(get_invoice_service)):
    """Create an invoice (JSON or multipart with `weighment_slips` files).

    The PDF is rendered in the background; `pdf_url` is null in the response.
    """
    data, files = await read_body(request, WEIGHMENT_SLIPS_FIELD)
    payload = validate_body(InvoiceCreate, data)
    return await service.create(payload, files)


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(service: InvoiceService = Depends(get_invoice_service)):
    return await service.find_all()


# Admin routes are declared before /{invoice_id}

@router.get("/admin/filter", response_model=List[InvoiceResponse])
async def filter_invoices(filters: InvoiceFilter = Depends(), service: InvoiceService = Depends(get_invoice_service)):
    return await service.filter_invoices(filters)


@router.post("/admin/export")
async def export_invoices(request: InvoiceExportRequest, service: InvoiceService = Depends(get_invoice_service)):
    content = await service.export_invoices_to_excel(request)
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="invoices-export-{timestamp}.xlsx"'},
    )


@router.get("/user/{user_id}", response_model=List[InvoiceResponse])
async def list_user_invoices(user_id: UUID, service: InvoiceService = Depends(get_invoice_service)):
    return await service.find_by_user_id(user_id)


@router.get("/number/{invoice_number}", response_model=InvoiceResponse)
async def get_invoice_by_number(invoice_number: str, service: InvoiceService = Depends(get_invoice_service)):
    invoice = await service.find_by_invoice_number(invoice_number)
    if not invoice:
        raise NotFoundError(f"Invoice {invoice_number} not found")
    return invoice


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: UUID, service: InvoiceService = Depends(get_invoice_service)):
    return await service.find_one(invoice_id)


@router.patch("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(invoice_id: UUID, request: Request, service: InvoiceService = Depends(get_invoice_service)):
    """Update an invoice. New weighment slips are appended; the invoice number never changes."""
    data, files = await read_body(request, WEIGHMENT_SLIPS_FIELD)
    payload = validate_body(InvoiceUpdate, data)
    return await service.update(invoice_id, payload, files)


@router.post("/{invoice_id}/regenerate", response_model=InvoiceResponse)
async def regenerate_invoice(invoice_id: UUID, request: Request, service: InvoiceService = Depends(get_invoice_service)):
    """Apply optional corrections and queue a fresh PDF."""
    data, files = await read_body(request, WEIGHMENT_SLIPS_FIELD)
    payload = validate_body(InvoiceUpdate, data)
    return await service.update(invoice_id, payload, files)


@router.post("/{invoice_id}/verify", response_model=InvoiceResponse)
async def verify_invoice(invoice_id: UUID, service: InvoiceService = Depends(get_invoice_service)):
    return await service.verify_invoice(invoice_id)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(invoice_id: UUID, service: InvoiceService = Depends(get_invoice_service)):
    await service.remove(invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
