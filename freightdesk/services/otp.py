# services/otp.py - OTP Providers
# ============================================================================

import logging

import httpx

from freightdesk.core.config import settings
from freightdesk.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class OtpProvider:
    """Sends a one-time code to a mobile number and checks it later."""

    async def send(self, mobile_number: str) -> str:
        """Send a code; returns the provider's session handle."""
        raise NotImplementedError

    async def verify(self, session_handle: str, code: str) -> bool:
        raise NotImplementedError


class TwoFactorOtpProvider(OtpProvider):
    """2Factor.in SMS OTP (AUTOGEN template)."""

    def __init__(self, api_key: str = None, base_url: str = None, template: str = None):
        self.api_key = api_key or settings.TWOFACTOR_API_KEY
        self.base_url = (base_url or settings.TWOFACTOR_BASE_URL).rstrip("/")
        self.template = template or settings.TWOFACTOR_TEMPLATE

    async def _call(self, path: str) -> dict:
        if not self.api_key:
            raise UpstreamError("2Factor API key missing")
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{self.base_url}/{self.api_key}/{path}")
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ 2Factor request failed: {e}")
            raise UpstreamError(f"OTP provider request failed: {e}") from e

    async def send(self, mobile_number: str) -> str:
        data = await self._call(f"SMS/{mobile_number}/AUTOGEN/{self.template}")
        if data.get("Status") != "Success":
            raise UpstreamError(f"Failed to send OTP: {data.get('Details')}")
        logger.info(f"📱 OTP sent to {mobile_number[-4:].rjust(len(mobile_number), '*')}")
        return data["Details"]

    async def verify(self, session_handle: str, code: str) -> bool:
        # A wrong code still returns a JSON body, with Status "Error"
        data = await self._call(f"SMS/VERIFY/{session_handle}/{code}")
        return data.get("Status") == "Success"


def get_otp_provider() -> OtpProvider:
    return TwoFactorOtpProvider()
