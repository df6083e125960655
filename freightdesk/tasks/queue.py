# tasks/queue.py - Celery App and Job Queue Handoff
# ============================================================================

import asyncio
import logging
from typing import Any, Dict

from celery import Celery

from freightdesk.core.config import settings

logger = logging.getLogger(__name__)

# Job names (task names registered by freightdesk.tasks.pdf_tasks)
GENERATE_INVOICE_PDF = "generate-pdf"
GENERATE_CLAIM_FORM_PDF = "generate-claim-form-pdf"

celery_app = Celery(
    "freightdesk",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["freightdesk.tasks.pdf_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # At-least-once: ack after the handler returns, requeue if the worker dies
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_routes={
        GENERATE_INVOICE_PDF: {"queue": settings.INVOICE_PDF_QUEUE},
        GENERATE_CLAIM_FORM_PDF: {"queue": settings.CLAIM_FORM_PDF_QUEUE},
    },
)


class JobQueue:
    """Fire-and-forget dispatch from request handlers to workers."""

    def __init__(self, app: Celery = celery_app):
        self.app = app

    async def enqueue(self, queue_name: str, job_type: str, payload: Dict[str, Any]) -> str:
        # send_task talks to the broker synchronously
        result = await asyncio.to_thread(
            self.app.send_task, job_type, kwargs=payload, queue=queue_name
        )
        logger.info(f"📤 Queued {job_type} on {queue_name}: {payload} (task {result.id})")
        return result.id

    async def enqueue_invoice_pdf(self, invoice_id) -> str:
        return await self.enqueue(
            settings.INVOICE_PDF_QUEUE, GENERATE_INVOICE_PDF, {"invoice_id": str(invoice_id)}
        )

    async def enqueue_claim_form_pdf(self, payload: Dict[str, Any]) -> str:
        return await self.enqueue(settings.CLAIM_FORM_PDF_QUEUE, GENERATE_CLAIM_FORM_PDF, payload)


def get_job_queue() -> JobQueue:
    return JobQueue()
