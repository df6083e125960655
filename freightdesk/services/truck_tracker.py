# ============================================================================
# services/truck_tracker.py - Live Truck Location
# ============================================================================
#
# Read-only view of the GPS tracker app's Firebase Realtime Database:
#   vehicles/<vehicle_id>          {vehicleNumber, ...}
#   sessions/<session_id>          {vehicleId, startedAt, lastSeen, isActive, status}
#   locations/latest/<session_id>  {lat, lng, speed, heading, timestamp}
# Timestamps are epoch milliseconds.

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from freightdesk.core.config import settings
from freightdesk.core.exceptions import InvalidInputError, UpstreamError
from freightdesk.schemas.truck import LocationResponse, TruckLocationResponse

logger = logging.getLogger(__name__)


@dataclass
class GpsFix:
    lat: float
    lng: float
    speed: Optional[float] = None
    heading: Optional[float] = None
    timestamp: int = 0


@dataclass
class VehicleLocation:
    vehicle_number: str
    vehicle_id: str
    session_id: Optional[str] = None
    online: bool = False
    last_seen: int = 0
    fix: Optional[GpsFix] = None


class LocationProvider:
    """Looks up the latest known position of a vehicle."""

    async def get_latest_location(self, vehicle_number: str) -> Optional[VehicleLocation]:
        """None when the vehicle is unknown to the tracking store."""
        raise NotImplementedError


class FirebaseLocationProvider(LocationProvider):
    """Firebase Realtime Database over its REST API."""

    def __init__(self, database_url: str = None, auth_token: str = None, timeout: float = None, transport: httpx.AsyncBaseTransport = None):
        self.database_url = (database_url or settings.FIREBASE_DATABASE_URL or "").rstrip("/")
        self.auth_token = auth_token or settings.FIREBASE_AUTH_TOKEN
        self.timeout = timeout or settings.LOCATION_TIMEOUT
        self.transport = transport

    async def _get(self, client: httpx.AsyncClient, path: str, **params) -> Any:
        if self.auth_token:
            params["auth"] = self.auth_token
        response = await client.get(f"{self.database_url}/{path}.json", params=params)
        response.raise_for_status()
        return response.json()

    async def get_latest_location(self, vehicle_number: str) -> Optional[VehicleLocation]:
        if not self.database_url:
            raise UpstreamError("FIREBASE_DATABASE_URL is not configured")

        wanted = vehicle_number.strip().lower()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                vehicles: Dict[str, dict] = await self._get(client, "vehicles") or {}

                vehicle_id, vehicle = next(
                    (
                        (vid, data)
                        for vid, data in vehicles.items()
                        if isinstance(data, dict) and str(data.get("vehicleNumber", "")).lower() == wanted
                    ),
                    (None, None),
                )
                if not vehicle_id:
                    return None

                found = VehicleLocation(vehicle_number=vehicle.get("vehicleNumber", vehicle_number), vehicle_id=vehicle_id)

                sessions: Dict[str, dict] = await self._get(
                    client, "sessions", orderBy='"vehicleId"', equalTo=f'"{vehicle_id}"'
                ) or {}
                if not sessions:
                    return found

                # Latest session by start time, active or not
                session_id, session = max(sessions.items(), key=lambda item: item[1].get("startedAt") or 0)
                found.session_id = session_id
                found.online = session.get("isActive") is True and session.get("status") == "online"
                found.last_seen = int(session.get("lastSeen") or 0)

                latest = await self._get(client, f"locations/latest/{session_id}")
                if latest and latest.get("lat") is not None and latest.get("lng") is not None:
                    found.fix = GpsFix(
                        lat=latest["lat"],
                        lng=latest["lng"],
                        speed=latest.get("speed"),
                        heading=latest.get("heading"),
                        timestamp=int(latest.get("timestamp") or 0),
                    )
                return found
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Location lookup failed for {vehicle_number}: {e}")
            raise UpstreamError(f"Failed to fetch truck location: {e}") from e


class ReverseGeocoder:
    """Nominatim reverse geocoding; failures only cost the place name."""

    def __init__(self, url: str = None, user_agent: str = None, timeout: float = None):
        self.url = url or settings.GEOCODER_URL
        self.user_agent = user_agent or settings.GEOCODER_USER_AGENT
        self.timeout = timeout or settings.LOCATION_TIMEOUT

    async def place_name(self, lat: float, lng: float) -> Optional[str]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    self.url,
                    params={"lat": lat, "lon": lng, "format": "json", "zoom": 18, "addressdetails": 1},
                    # Nominatim rejects requests without a User-Agent
                    headers={"User-Agent": self.user_agent},
                )
                response.raise_for_status()
                return response.json().get("display_name")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"⚠️ Reverse geocoding failed for {lat},{lng}: {e}")
            return None


def format_millis(millis: int) -> str:
    moment = datetime.fromtimestamp((millis or 0) / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TruckTrackerService:
    def __init__(self, provider: LocationProvider, geocoder: Optional[ReverseGeocoder] = None):
        self.provider = provider
        self.geocoder = geocoder

    @staticmethod
    def _offline(vehicle_number: str, vehicle_id: Optional[str] = None, message: Optional[str] = None) -> TruckLocationResponse:
        return TruckLocationResponse(
            vehicle_number=vehicle_number,
            vehicle_id=vehicle_id,
            status="offline",
            last_seen=0,
            last_seen_formatted=format_millis(0),
            location=None,
            message=message,
        )

    async def get_truck_location(self, vehicle_number: str) -> TruckLocationResponse:
        trimmed = (vehicle_number or "").strip()
        if not trimmed:
            raise InvalidInputError("Vehicle number is required")

        found = await self.provider.get_latest_location(trimmed)
        if found is None:
            return self._offline(trimmed, message=f"Vehicle not found: {trimmed}")
        if not found.session_id:
            return self._offline(found.vehicle_number, found.vehicle_id, "No sessions found for this vehicle")

        location = None
        if found.fix:
            fix = found.fix
            place_name = None
            if self.geocoder and fix.lat and fix.lng:
                place_name = await self.geocoder.place_name(fix.lat, fix.lng)
            location = LocationResponse(
                lat=fix.lat,
                lng=fix.lng,
                speed=fix.speed,
                speed_kmh=f"{fix.speed * 3.6:.2f}" if fix.speed else None,
                heading=fix.heading,
                timestamp=fix.timestamp,
                timestamp_formatted=format_millis(fix.timestamp),
                place_name=place_name,
            )

        return TruckLocationResponse(
            vehicle_number=found.vehicle_number,
            vehicle_id=found.vehicle_id,
            session_id=found.session_id,
            status="online" if found.online else "offline",
            last_seen=found.last_seen,
            last_seen_formatted=format_millis(found.last_seen),
            location=location,
        )


def get_truck_tracker() -> TruckTrackerService:
    return TruckTrackerService(FirebaseLocationProvider(), ReverseGeocoder())
