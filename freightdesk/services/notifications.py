# services/notifications.py - WhatsApp Notifications (Chatrace)
# ============================================================================

import logging
from typing import Any, Dict

import httpx

from freightdesk.core.config import settings
from freightdesk.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class WhatsAppNotifier:
    """Sends the "invoice verified" WhatsApp flow through the Chatrace API."""

    def __init__(self, api_key: str = None, flow_id: int = None, api_url: str = None):
        self.api_key = api_key or settings.CHATRACE_API_KEY
        self.flow_id = flow_id if flow_id is not None else settings.CHATRACE_FLOW_ID
        self.api_url = api_url or settings.CHATRACE_API_URL

    @staticmethod
    def _phone(raw: str) -> str:
        raw = raw.strip()
        return raw if raw.startswith("+91") else f"+91{raw}"

    def build_payload(self, phone: str, supplier_name: str, invoice_number: str, pdf_url: str) -> Dict[str, Any]:
        supplier = (supplier_name or "").strip() or "Customer"
        return {
            "phone": self._phone(phone),
            "first_name": supplier,
            "last_name": "",
            "gender": "male",
            "actions": [
                {"action": "set_field_value", "field_name": "supplier_name", "value": supplier},
                {"action": "set_field_value", "field_name": "invoice_number", "value": (invoice_number or "").strip() or "INV-000"},
                {"action": "set_field_value", "field_name": "invoice_pdf", "value": (pdf_url or "").strip()},
                {"action": "send_flow", "flow_id": self.flow_id},
            ],
        }

    async def send_invoice_verified(self, phone: str, supplier_name: str, invoice_number: str, pdf_url: str) -> Dict[str, Any]:
        payload = self.build_payload(phone, supplier_name, invoice_number, pdf_url)
        logger.info(f"📨 Sending invoice WhatsApp flow for {invoice_number}")

        try:
            async with httpx.AsyncClient(timeout=15.0) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={
                        "Accept": "application/json",
                        "X-ACCESS-TOKEN": self.api_key or "",
                    },
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"❌ Chatrace request failed for {invoice_number}: {e}")
            raise UpstreamError(f"WhatsApp notification failed: {e}") from e

        logger.info(f"✅ Invoice WhatsApp sent | Invoice={invoice_number}")
        return response.json() if response.content else {}


def get_notifier() -> WhatsAppNotifier:
    return WhatsAppNotifier()
