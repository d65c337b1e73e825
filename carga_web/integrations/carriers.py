"""Carrier tracking adapters and the booking-info merge.

Maersk is called for real through its two-step tracking API (summary lookup
for the transport document, then the shipment detail). Hapag-Lloyd and the
generic multi-carrier lookup are simulated.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

import requests

from carga_common.dates import parse_datetime
from carga_common.shipments import Shipment, merge_tracking_details

from . import IntegrationError, resolve_session

logger = logging.getLogger(__name__)

MAERSK_BASE_URL = "https://maersk-prod-v2.p.mashape.com"
REQUEST_TIMEOUT = 20


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _latest_status(events: List[Dict[str, Any]]) -> str:
    for event in reversed(events):
        if event["completed"]:
            return event["status"]
    return "Pending"


def _milestones_from_events(events: List[Dict[str, Any]], transshipment_at: str = "") -> List[Dict[str, Any]]:
    return [
        {
            "name": event["status"],
            "status": "completed" if event["completed"] else "pending",
            "predictedDate": event["date"],
            "effectiveDate": event["date"] if event["completed"] else None,
            "details": event["location"],
            "isTransshipment": bool(transshipment_at) and event["location"] == transshipment_at,
        }
        for event in events
    ]


class MaerskClient:
    """Maersk tracking API (``Consumer-Key`` authentication)."""

    def __init__(self, api_key: Optional[str], *, session: Optional[requests.Session] = None):
        self._api_key = api_key
        self._session = resolve_session(session)

    def _get(self, path: str, **params: str) -> requests.Response:
        return self._session.get(
            f"{MAERSK_BASE_URL}{path}",
            params=params or None,
            headers={"Consumer-Key": self._api_key, "Accept": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )

    def get_tracking(self, tracking_number: str) -> Dict[str, Any]:
        """Return ``{status, events, shipmentDetails}`` for a booking or BL.

        Raises:
            IntegrationError: Missing key, authentication failure, unknown
                booking or an empty detail response.
        """

        if not self._api_key:
            raise IntegrationError("A chave de API da Maersk não está configurada no arquivo .env.")

        summary = self._get(
            "/v2/tracking/shipments-summaries", carrierBookingReference=tracking_number
        )
        if not summary.ok:
            if summary.status_code in (401, 403):
                raise IntegrationError(
                    f"Erro de Autenticação/Autorização (Status {summary.status_code}). "
                    "Verifique se a chave de API da Maersk está correta."
                )
            raise IntegrationError(
                f"Maersk API Error (Summary Check): Status {summary.status_code}. "
                f"Resposta: {summary.text}"
            )
        shipments = summary.json().get("shipments") or []
        if not shipments:
            raise IntegrationError(
                f"Nenhum embarque encontrado para o número de rastreamento: {tracking_number}. "
                "Verifique se o número está correto e se a sua chave de API tem permissão "
                "para acessá-lo."
            )
        document_id = shipments[0].get("transportDocumentId")
        logger.info("Maersk transport document %s for booking %s", document_id, tracking_number)

        detail = self._get(f"/v2/tracking/shipments/{document_id}")
        if not detail.ok:
            raise IntegrationError(
                f"Maersk API Error (Detail Fetch): Status {detail.status_code}. "
                f"Resposta: {detail.text}"
            )
        details = detail.json().get("shipments") or []
        if not details:
            raise IntegrationError(
                f"Nenhuma informação de embarque encontrada na resposta da API para "
                f"{document_id}, embora a chamada tenha sido bem-sucedida."
            )
        return self._map_shipment(details[0], tracking_number)

    @staticmethod
    def _map_shipment(data: Mapping[str, Any], tracking_number: str) -> Dict[str, Any]:
        legs = [leg.get("transportLeg") or {} for leg in data.get("transportPlan") or []]
        origin_leg = next((leg for leg in legs if leg.get("sequenceNumber") == 1), {})
        destination_leg = next((leg for leg in reversed(legs) if leg.get("destination")), {})
        raw_events = data.get("events") or []

        events = sorted(
            (
                {
                    "status": event.get("eventDescription"),
                    "date": event.get("eventDateTime"),
                    "location": (event.get("eventLocation") or {}).get("locationName")
                    or "Unknown Location",
                    "completed": event.get("eventClassifierCode") == "ACT",
                    "carrier": "Maersk",
                }
                for event in raw_events
            ),
            key=lambda e: parse_datetime(e["date"]) or datetime.min,
        )

        def _event_time(code: str, leg: Mapping[str, Any], side: str) -> Optional[datetime]:
            for event in raw_events:
                if event.get("eventTypeCode") == code:
                    return parse_datetime(event.get("eventDateTime"))
            return parse_datetime((leg.get(side) or {}).get("eventDateTime"))

        details = {
            "origin": (origin_leg.get("origin") or {}).get("locationName") or "Unknown",
            "destination": (destination_leg.get("destination") or {}).get("locationName")
            or "Unknown",
            "bookingNumber": data.get("carrierBookingReference"),
            "masterBillNumber": data.get("transportDocumentReference"),
            "vesselName": (origin_leg.get("vessel") or {}).get("vesselName") or "",
            "voyageNumber": origin_leg.get("voyageReference") or "",
            "etd": _iso(_event_time("ETD", origin_leg, "departure")),
            "eta": _iso(_event_time("ETA", destination_leg, "arrival")),
            "milestones": _milestones_from_events(events),
        }
        details["id"] = data.get("carrierBookingReference") or tracking_number
        return {"status": _latest_status(events), "events": events, "shipmentDetails": details}


class HapagLloydClient:
    """Simulated Hapag-Lloyd tracking."""

    def get_tracking(self, tracking_number: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        logger.info("Simulated Hapag-Lloyd tracking for %s", tracking_number)
        now = now or datetime.now(timezone.utc).replace(tzinfo=None)
        events = [
            {
                "status": "Discharged",
                "date": now.isoformat(),
                "location": "ROTTERDAM",
                "completed": True,
                "carrier": "Hapag-Lloyd",
            },
            {
                "status": "Loaded on board",
                "date": (now - timedelta(days=15)).isoformat(),
                "location": "SANTOS",
                "completed": True,
                "carrier": "Hapag-Lloyd",
            },
        ]
        return {"status": "In Transit", "events": events, "shipmentDetails": {}}


_SIMULATED_EVENTS = (
    ("Booking confirmed", "2024-05-13T12:00:00Z", "VERACRUZ"),
    ("Container stuffing", "2024-05-14T15:00:00Z", "VERACRUZ"),
    ("Received at origin port", "2024-05-15T10:00:00Z", "VERACRUZ"),
    ("Loaded on board", "2024-05-17T08:00:00Z", "VERACRUZ"),
    ("Vessel departure", "2024-05-17T18:00:00Z", "VERACRUZ"),
    ("Discharged at transhipment port", "2024-05-20T11:00:00Z", "FREEPORT"),
    ("Loaded at transhipment port", "2024-05-21T09:00:00Z", "FREEPORT"),
    ("Vessel departure from transhipment", "2024-05-21T20:00:00Z", "FREEPORT"),
    ("Vessel arrival at destination port", "2024-05-23T16:00:00Z", "HOUSTON"),
    ("Container discharged", "2024-05-24T06:00:00Z", "HOUSTON"),
    ("Gate out for delivery", "2024-05-25T14:00:00Z", "HOUSTON"),
    ("Delivered to consignee", "2024-05-26T10:00:00Z", "HOUSTON"),
)


def get_tracking_info(tracking_number: str) -> Dict[str, Any]:
    """Simulated multi-carrier tracking lookup.

    Raises:
        IntegrationError: For tracking numbers containing ``FAIL``.
    """

    if "FAIL" in tracking_number.upper():
        raise IntegrationError(
            "O número de rastreamento fornecido não foi encontrado na base de dados do "
            "Cargo-flows."
        )
    events = [
        {"status": status, "date": when, "location": location, "completed": True, "carrier": "Maersk"}
        for status, when, location in _SIMULATED_EVENTS
    ]
    details = {
        "bookingNumber": tracking_number,
        "masterBillNumber": "MAEU514773513",
        "vesselName": "MAERSK SEOUL",
        "voyageNumber": "419N",
        "origin": "Veracruz, MX",
        "destination": "Houston, US",
        "etd": "2024-05-17T18:00:00",
        "eta": "2024-05-23T16:00:00",
        "milestones": _milestones_from_events(events, transshipment_at="FREEPORT"),
        "transshipments": [
            {
                "id": "ts-1",
                "port": "Freeport",
                "vessel": "MAERSK GENOA/420N",
                "etd": "2024-05-21T20:00:00",
                "eta": "2024-05-20T11:00:00",
            }
        ],
    }
    return {"status": _latest_status(events), "events": events, "shipmentDetails": details}


def get_booking_info(
    booking_number: str,
    carrier: str,
    shipment: Shipment,
    *,
    maersk: Optional[MaerskClient] = None,
    hapag: Optional[HapagLloydClient] = None,
) -> Shipment:
    """Fetch carrier data for ``booking_number`` and merge it into ``shipment``.

    Manually entered data (customer, partners, charges) is kept; any field the
    carrier returns overrides the stored one.

    Raises:
        IntegrationError: For carriers without automatic tracking or a failed
            carrier lookup.
    """

    key = carrier.upper()
    if key == "MAERSK":
        result = (maersk or MaerskClient(None)).get_tracking(booking_number)
    elif key == "HAPAG-LLOYD":
        result = (hapag or HapagLloydClient()).get_tracking(booking_number)
    else:
        raise IntegrationError(f"Carrier '{carrier}' is not supported for automatic tracking.")
    return merge_tracking_details(shipment, result.get("shipmentDetails") or {})


__all__ = [
    "HapagLloydClient",
    "MaerskClient",
    "get_booking_info",
    "get_tracking_info",
]
