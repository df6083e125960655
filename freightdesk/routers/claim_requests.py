# routers/claim_requests.py - Claim Request Endpoints
# ============================================================================

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.database import get_db
from freightdesk.models.claim_request import ClaimStatus
from freightdesk.schemas.claim_request import (
    ClaimRequestFilter,
    ClaimRequestResponse,
    CreateClaimByTruck,
    DamageForm,
    DamageFormAccepted,
    UpdateClaimStatus,
)
from freightdesk.services.claim_requests import ClaimRequestService
from freightdesk.services.storage import StorageService, get_storage_service
from freightdesk.tasks.queue import JobQueue, get_job_queue

router = APIRouter(prefix="/claim-requests", tags=["Claim Requests"])


def get_claim_service(
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    storage: StorageService = Depends(get_storage_service),
) -> ClaimRequestService:
    return ClaimRequestService(db, queue, storage)


@router.post("/by-truck", response_model=ClaimRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_claim_by_truck(request: CreateClaimByTruck, service: ClaimRequestService = Depends(get_claim_service)):
    """Open a claim on the truck's most recent invoice."""
    return await service.create_claim_by_truck(request.truck_number)


@router.get("", response_model=List[ClaimRequestResponse])
async def list_claim_requests(filters: ClaimRequestFilter = Depends(), service: ClaimRequestService = Depends(get_claim_service)):
    return await service.find_all(filters)


@router.get("/status/{claim_status}", response_model=List[ClaimRequestResponse])
async def list_by_status(claim_status: ClaimStatus, service: ClaimRequestService = Depends(get_claim_service)):
    return await service.find_by_status(claim_status)


@router.get("/user/{user_id}", response_model=List[ClaimRequestResponse])
async def list_user_claims(user_id: UUID, service: ClaimRequestService = Depends(get_claim_service)):
    return await service.find_by_user_id(user_id)


@router.get("/{claim_request_id}", response_model=ClaimRequestResponse)
async def get_claim_request(claim_request_id: UUID, service: ClaimRequestService = Depends(get_claim_service)):
    return await service.find_one(claim_request_id)


@router.patch("/{claim_request_id}/status", response_model=ClaimRequestResponse)
async def update_claim_status(
    claim_request_id: UUID,
    update: UpdateClaimStatus,
    service: ClaimRequestService = Depends(get_claim_service),
):
    return await service.update_status(claim_request_id, update)


@router.post("/{claim_request_id}/supporting-media", response_model=ClaimRequestResponse)
async def upload_supporting_media(
    claim_request_id: UUID,
    files: Optional[List[UploadFile]] = File(None),
    service: ClaimRequestService = Depends(get_claim_service),
):
    return await service.upload_supporting_media(claim_request_id, files)


@router.post("/{claim_request_id}/damage-form", response_model=DamageFormAccepted, status_code=status.HTTP_202_ACCEPTED)
async def submit_damage_form(
    claim_request_id: UUID,
    form: DamageForm,
    service: ClaimRequestService = Depends(get_claim_service),
):
    """Queue the damage certificate; `claim_form_url` is set when it is rendered."""
    return await service.create_damage_form_and_queue_pdf(claim_request_id, form)
