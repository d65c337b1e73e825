"""Cargo-flows public tracking API client.

Shipments are registered by booking, container or MBL number and become
available asynchronously, so lookups go through :meth:`CargoFlowsClient.poll_shipment`,
a bounded retry loop with capped exponential backoff. The API sometimes answers
with an HTML error page and a 200 status; bodies are sniffed before they are
decoded as JSON.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from pydantic import BaseModel, Field

from carga_common.rates import find_carrier_by_name

from . import IntegrationError, resolve_session

logger = logging.getLogger(__name__)

BASE_URL = "https://connect.cargoes.com/flow/api/public_tracking/v1"
SHIPMENT_URL = f"{BASE_URL}/shipments"
CREATE_URL = f"{BASE_URL}/createShipments"
UPDATE_URL = f"{BASE_URL}/updateShipments"
MAP_ROUTES_URL = f"{BASE_URL}/mapRoutes"

TRACKING_TYPES = ("bookingNumber", "containerNumber", "mblNumber")
BASE_DELAY_MS = 3000
MAX_DELAY_MS = 30000
REQUEST_TIMEOUT = 15
DEFAULT_MAX_ATTEMPTS = 5
VERIFY_MAX_ATTEMPTS = 8

MISSING_CREDENTIALS_MESSAGE = (
    "As credenciais da API Cargo-flows (CARGOFLOWS_API_KEY, CARGOFLOWS_ORG_TOKEN) "
    "não estão configuradas no ambiente."
)


class CargoFlowsError(IntegrationError):
    """Raised for failed or malformed Cargo-flows responses."""


class EnhancedPollingError(CargoFlowsError):
    """Polling gave up; carries enough context for the HTTP error payload."""

    def __init__(
        self,
        original: Any,
        tracking_number: str,
        attempts: int,
        last_payload: Optional[Dict[str, Any]] = None,
    ):
        message = f"Failed to poll for shipment {tracking_number} after {attempts} attempts"
        if isinstance(original, Exception):
            message += f": {original}"
        super().__init__(message)
        self.tracking_number = tracking_number
        self.attempts = attempts
        self.last_payload = last_payload

    def to_response(self) -> Dict[str, Any]:
        response: Dict[str, Any] = {
            "status": "error",
            "message": str(self),
            "trackingNumber": self.tracking_number,
            "attempts": self.attempts,
            "code": "POLLING_FAILURE",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
        if self.last_payload:
            response["lastPayload"] = self.last_payload
        return response


def backoff_delay_ms(attempt: int) -> int:
    """Delay before ``attempt`` (zero-based); the first attempt is immediate."""

    if attempt <= 0:
        return 0
    return min(BASE_DELAY_MS * 2**attempt, MAX_DELAY_MS)


def safely_parse_json(response: requests.Response) -> Any:
    """Decode a JSON body, rejecting HTML pages.

    Returns:
        The decoded document, or ``None`` for an empty body.

    Raises:
        CargoFlowsError: The body is HTML or not valid JSON.
    """

    text = response.text or ""
    if text.strip().startswith("<"):
        logger.error(
            "Failed to parse API response: received HTML instead of JSON. %s", text[:500]
        )
        raise CargoFlowsError("Unexpected API response. Server returned HTML.")
    if text == "":
        return None
    try:
        return json.loads(text)
    except ValueError:
        logger.error("Failed to parse API response as JSON: %s", text[:500])
        raise CargoFlowsError(
            f"Failed to parse API response. Content received: {text[:200]}"
        ) from None


def build_tracking_payload(
    tracking_type: str, tracking_number: str, ocean_line: Optional[str] = None
) -> Dict[str, Any]:
    """Build the ``createShipments`` form for one tracking reference.

    Booking and container lookups need the carrier (``oceanLine``); MBL
    lookups do not.
    """

    if tracking_type == "bookingNumber":
        item = {
            "uploadType": "FORM_BY_BOOKING_NUMBER",
            "bookingNumber": tracking_number,
            "oceanLine": ocean_line,
        }
    elif tracking_type == "containerNumber":
        item = {
            "uploadType": "FORM_BY_CONTAINER_NUMBER",
            "containerNumber": tracking_number,
            "oceanLine": ocean_line,
        }
    elif tracking_type == "mblNumber":
        item = {"uploadType": "FORM_BY_MBL_NUMBER", "mblNumber": tracking_number}
    else:
        raise ValueError(f"Invalid tracking type: {tracking_type}")
    return {"formData": [item]}


def _is_found(data: Any) -> bool:
    if data is None:
        return False
    if isinstance(data, list):
        return len(data) > 0
    return True


class RoutePoint(BaseModel):
    lat: float
    lon: float
    trackDistance: float
    name: Optional[str] = None
    locode: Optional[str] = None
    clazz: Optional[float] = None
    routingAreaId: Optional[float] = None


class JourneyStop(BaseModel):
    lat: float
    lon: float
    name: str
    type: str
    isFuture: bool
    displayNamePermanently: bool


class ShipmentLocation(BaseModel):
    lat: float
    lon: float
    locationTimestamp: str
    locationType: str
    locationLabel: str
    vesselName: str


class Routes(BaseModel):
    shipToPort: List[RoutePoint] = Field(default_factory=list)
    portToPort: List[RoutePoint] = Field(default_factory=list)
    shipToDestination: List[RoutePoint] = Field(default_factory=list)


class RouteMap(BaseModel):
    shipmentLocation: Optional[ShipmentLocation] = None
    journeyStops: List[JourneyStop] = Field(default_factory=list)
    routes: Routes
    shipmentType: str


class CargoFlowsClient:
    """Thin wrapper over the tracking endpoints used by the back office.

    Args:
        api_key: ``X-DPW-ApiKey`` credential.
        org_token: ``X-DPW-Org-Token`` credential.
        session: Optional HTTP session, defaults to a new
            :class:`requests.Session`.
        sleep: Callable receiving seconds to wait between polling attempts.
    """

    def __init__(
        self,
        api_key: Optional[str],
        org_token: Optional[str],
        *,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._api_key = api_key
        self._org_token = org_token
        self._session = resolve_session(session)
        self._sleep = sleep

    def _headers(self) -> Dict[str, str]:
        if not self._api_key or not self._org_token:
            raise CargoFlowsError(MISSING_CREDENTIALS_MESSAGE)
        return {
            "X-DPW-ApiKey": self._api_key,
            "X-DPW-Org-Token": self._org_token,
            "Content-Type": "application/json",
            "accept": "application/json",
        }

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            return response.json().get("error", {}).get("message") or response.text
        except (ValueError, AttributeError):
            return response.text or f"Cargo-flows API Error ({response.status_code})"

    def poll_shipment(
        self,
        tracking_number: str,
        tracking_type: str = "bookingNumber",
        carrier_name: Optional[str] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> Dict[str, Any]:
        """Poll until the shipment is visible or the attempts run out.

        Args:
            tracking_number: Booking, container or MBL number.
            tracking_type: Query parameter name, one of :data:`TRACKING_TYPES`.
            carrier_name: Optional ``carrierName`` filter.
            max_attempts: Number of requests before giving up.

        Returns:
            dict: ``{"status": "found", "shipment", "attempts"}`` or
            ``{"status": "not_found", "attempts", "lastAttempt"}``.

        Raises:
            EnhancedPollingError: When the final attempt fails with an error
                or the credentials are missing.
        """

        params = {tracking_type: tracking_number}
        if carrier_name:
            params["carrierName"] = carrier_name
        try:
            headers = self._headers()
        except CargoFlowsError as exc:
            raise EnhancedPollingError(exc, tracking_number, 1) from exc

        attempts = 0
        while attempts < max_attempts:
            try:
                delay = backoff_delay_ms(attempts)
                if delay > 0:
                    logger.info(
                        "Polling attempt %s: waiting %ss", attempts + 1, delay / 1000
                    )
                    self._sleep(delay / 1000)

                response = self._session.get(
                    SHIPMENT_URL,
                    params=params,
                    headers=headers,
                    timeout=REQUEST_TIMEOUT,
                )
                if response.status_code == 204:
                    logger.info("Polling attempt %s: received 204 No Content", attempts + 1)
                    attempts += 1
                    continue

                if response.ok:
                    data = safely_parse_json(response)
                    if _is_found(data):
                        return {
                            "status": "found",
                            "shipment": data[0] if isinstance(data, list) else data,
                            "attempts": attempts + 1,
                        }
                else:
                    try:
                        body = safely_parse_json(response)
                    except CargoFlowsError as exc:
                        body = {"message": str(exc)}
                    message = body.get("message") if isinstance(body, dict) else None
                    raise CargoFlowsError(
                        f"API Error {response.status_code}: {message or 'Unknown API Error'}"
                    )
                attempts += 1
            except (CargoFlowsError, requests.RequestException) as exc:
                logger.warning(
                    "Polling attempt %s for %s failed: %s", attempts + 1, tracking_number, exc
                )
                attempts += 1
                if attempts >= max_attempts:
                    raise EnhancedPollingError(exc, tracking_number, attempts) from exc

        return {
            "status": "not_found",
            "attempts": attempts,
            "lastAttempt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    def create_shipment(
        self,
        tracking_number: str,
        tracking_type: str = "bookingNumber",
        carrier_name: Optional[str] = None,
    ) -> Any:
        """Register a tracking reference with Cargo-flows.

        Raises:
            EnhancedPollingError: The request failed or did not return JSON;
                the error carries the payload that was sent.
        """

        carrier = find_carrier_by_name(carrier_name) if carrier_name else None
        ocean_line = (carrier.scac or carrier.name) if carrier else carrier_name
        payload = build_tracking_payload(tracking_type, tracking_number, ocean_line)
        logger.info("Creating Cargo-flows shipment with payload %s", payload)
        try:
            response = self._session.post(
                CREATE_URL, json=payload, headers=self._headers(), timeout=REQUEST_TIMEOUT
            )
        except (CargoFlowsError, requests.RequestException) as exc:
            raise EnhancedPollingError(exc, tracking_number, 1, payload) from exc

        content_type = response.headers.get("content-type", "")
        if not response.ok or "application/json" not in content_type:
            logger.error(
                "Failed to create shipment. Status %s, content type %s: %s",
                response.status_code,
                content_type,
                (response.text or "")[:500],
            )
            raise EnhancedPollingError(
                CargoFlowsError(
                    "API creation failed or returned non-JSON response with status "
                    f"{response.status_code}"
                ),
                tracking_number,
                1,
                payload,
            )
        return response.json()

    def track(
        self,
        tracking_number: str,
        tracking_type: str = "bookingNumber",
        carrier_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Find a shipment, registering it first when Cargo-flows lacks it.

        Returns:
            dict: ``{"status": "success", "data": shipment}`` plus
            ``"created": True`` when the shipment had to be registered.

        Raises:
            EnhancedPollingError: Polling failed, creation failed or the new
                shipment never became visible.
        """

        result = self.poll_shipment(tracking_number, tracking_type, carrier_name)
        if result["status"] == "found":
            return {"status": "success", "data": result["shipment"]}

        logger.info("Shipment %s not found; requesting creation", tracking_number)
        self.create_shipment(tracking_number, tracking_type, carrier_name)
        verification = self.poll_shipment(
            tracking_number, tracking_type, carrier_name, VERIFY_MAX_ATTEMPTS
        )
        if verification["status"] == "found":
            return {"status": "success", "data": verification["shipment"], "created": True}

        raise EnhancedPollingError(
            CargoFlowsError("Shipment not available after creation request."),
            tracking_number,
            verification["attempts"],
        )

    def update_shipment(self, shipment_number: str) -> Dict[str, Any]:
        """Ask Cargo-flows to refresh an existing shipment."""

        response = self._session.put(
            UPDATE_URL,
            json={"formData": [{"shipmentNumber": shipment_number}]},
            headers=self._headers(),
            timeout=REQUEST_TIMEOUT,
        )
        if not response.ok:
            logger.error("Cargo-flows updateShipments error: %s", response.text)
            raise CargoFlowsError(self._error_message(response))
        return {
            "success": True,
            "message": f"Shipment {shipment_number} update request sent successfully.",
        }

    def list_active_events(self) -> List[Dict[str, Any]]:
        """Events of every active intermodal shipment, flattened."""

        response = self._session.get(
            SHIPMENT_URL,
            params={"shipmentType": "INTERMODAL_SHIPMENT", "status": "ACTIVE"},
            headers=self._headers(),
            timeout=REQUEST_TIMEOUT,
        )
        if not response.ok:
            logger.error("Cargo-flows events error: %s", response.text)
            raise CargoFlowsError(
                f"Failed to fetch from Cargoes Flow API: {response.reason}"
            )
        events = []
        for shipment in safely_parse_json(response) or []:
            for event in shipment.get("shipmentEvents") or []:
                events.append(
                    {
                        "eventName": event.get("name"),
                        "location": event.get("location"),
                        "time": event.get("actualTime") or event.get("estimateTime"),
                    }
                )
        return events

    def get_route_map(self, shipment_number: str) -> Dict[str, Any]:
        """Vessel position, journey stops and route polylines for a shipment."""

        response = self._session.get(
            MAP_ROUTES_URL,
            params={"shipmentNumber": shipment_number},
            headers=self._headers(),
            timeout=REQUEST_TIMEOUT,
        )
        if not response.ok:
            logger.error("Cargo-flows mapRoutes error: %s", response.text)
            raise CargoFlowsError(self._error_message(response))
        return RouteMap.model_validate(response.json()).model_dump()


__all__ = [
    "CargoFlowsClient",
    "CargoFlowsError",
    "EnhancedPollingError",
    "RouteMap",
    "TRACKING_TYPES",
    "backoff_delay_ms",
    "build_tracking_payload",
    "safely_parse_json",
]
