"""Courier rate quotes through the ShipEngine REST API."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests

from carga_common.partners import Partner

from . import IntegrationError, resolve_session

logger = logging.getLogger(__name__)

RATES_URL = "https://api.shipengine.com/v1/rates"
REQUEST_TIMEOUT = 30

SHIP_FROM: Dict[str, str] = {
    "name": "CargaInteligente",
    "phone": "4730453944",
    "company_name": "CargaInteligente",
    "address_line1": "Rua Domingos Fascin Neto, 584",
    "city_locality": "Itajaí",
    "state_province": "SC",
    "postal_code": "88306720",
    "country_code": "BR",
    "address_residential_indicator": "no",
}


def _digits(value: Any) -> str:
    return re.sub(r"\D", "", str(value or ""))


def ship_to_address(customer: Partner) -> Dict[str, str]:
    """Delivery address built from the customer's first contact."""

    if not customer.contacts:
        raise IntegrationError(f"Customer {customer.name} has no contact for delivery.")
    contact = customer.contacts[0]
    address = customer.address
    return {
        "name": contact.name,
        "phone": _digits(contact.phone),
        "company_name": customer.name,
        "address_line1": f"{address.get('street', '')}, {address.get('number', '')}",
        "city_locality": address.get("city", ""),
        "state_province": address.get("state", ""),
        "postal_code": _digits(address.get("zip")),
        "country_code": "BR" if address.get("country") == "Brasil" else "US",
        "address_residential_indicator": "no",
    }


def build_rate_request(customer: Partner, pieces: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    packages = [
        {
            "weight": {"value": piece.get("weight"), "unit": "kilogram"},
            "dimensions": {
                "unit": "centimeter",
                "length": piece.get("length"),
                "width": piece.get("width"),
                "height": piece.get("height"),
            },
        }
        for piece in pieces
    ]
    return {
        "rate_options": {"carrier_ids": []},
        "shipment": {
            "validate_address": "no_validation",
            "ship_to": ship_to_address(customer),
            "ship_from": dict(SHIP_FROM),
            "packages": packages,
        },
    }


def _format_rate(rate: Mapping[str, Any]) -> Dict[str, Any]:
    cost = sum(
        float((rate.get(key) or {}).get("amount") or 0)
        for key in ("shipping_amount", "insurance_amount", "other_amount")
    )
    currency = (rate.get("shipping_amount") or {}).get("currency", "")
    carrier = rate.get("carrier_friendly_name", "")
    return {
        "id": rate.get("rate_id"),
        "carrier": carrier,
        "service": rate.get("service_type"),
        "deliveryDays": rate.get("delivery_days"),
        "cost": f"{currency} {cost:.2f}",
        "costValue": cost,
        "carrierLogo": f"https://placehold.co/120x40.png?text={rate.get('carrier_code', '')}",
        "dataAiHint": f"{carrier.lower()} logo",
        "source": "ShipEngine",
    }


class ShipEngineClient:
    def __init__(self, api_key: Optional[str], *, session: Optional[requests.Session] = None):
        self._api_key = api_key
        self._session = resolve_session(session)

    def get_courier_rates(
        self, customer: Partner, pieces: Iterable[Mapping[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Quote a package shipment from the company office to ``customer``.

        Raises:
            IntegrationError: When the key is missing or ShipEngine rejects the
                request.
        """

        if not self._api_key:
            raise IntegrationError("ShipEngine API key is not configured.")
        response = self._session.post(
            RATES_URL,
            json=build_rate_request(customer, pieces),
            headers={"API-Key": self._api_key, "Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
        if not response.ok:
            try:
                errors = response.json().get("errors") or []
            except ValueError:
                errors = []
            message = errors[0].get("message") if errors else "Unknown error"
            logger.error("ShipEngine API error %s: %s", response.status_code, message)
            raise IntegrationError(f"ShipEngine API Error ({response.status_code}): {message}")

        rate_response = response.json().get("rate_response") or {}
        if rate_response.get("status") == "completed" and rate_response.get("rates"):
            return [_format_rate(rate) for rate in rate_response["rates"]]
        if rate_response.get("errors"):
            raise IntegrationError(rate_response["errors"][0].get("message", "Unknown error"))
        return []


__all__ = ["SHIP_FROM", "ShipEngineClient", "build_rate_request", "ship_to_address"]
