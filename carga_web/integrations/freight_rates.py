"""Spot freight rate search.

Ocean rates come from a CargoFive-style market feed and air rates from a
CargoAI-style feed. Both are simulated: every requested origin and
destination pair (comma separated in the form) is priced and the combined
list is returned cheapest first.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

OCEAN_CARRIERS = (("Maersk", "maersk logo"), ("MSC", "msc logo"), ("CMA CGM", "cma cgm logo"))
AIR_CARRIERS = (
    ("LATAM Cargo", "latam logo"),
    ("Lufthansa Cargo", "lufthansa logo"),
    ("American Airlines", "american airlines logo"),
)


def split_locations(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _pairs(form: Mapping[str, Any]) -> List[Tuple[str, str]]:
    origins = split_locations(form.get("origin"))
    destinations = split_locations(form.get("destination"))
    return [(o, d) for o in origins for d in destinations]


def _touches_china(origin: str, destination: str) -> bool:
    return "china" in origin.lower() or "china" in destination.lower()


def _first_container_type(form: Mapping[str, Any]) -> str:
    containers = (form.get("oceanShipment") or {}).get("containers") or []
    if containers and containers[0].get("type"):
        return str(containers[0]["type"])
    return "20'GP"


def _ocean_rates(
    form: Mapping[str, Any], origin: str, destination: str, rng: random.Random, stamp: int
) -> List[Dict[str, Any]]:
    base = 5000.0 if _touches_china(origin, destination) else 2000.0
    if "40" in _first_container_type(form):
        base *= 1.8
    rates = []
    for name, hint in OCEAN_CARRIERS:
        cost = base + rng.random() * 500
        rates.append(
            {
                "id": f"simulated-ocean-{name}-{stamp}",
                "carrier": name,
                "origin": origin,
                "destination": destination,
                "transitTime": f"{25 + rng.randrange(10)} dias",
                "cost": f"${cost:,.2f}",
                "costValue": cost,
                "carrierLogo": f"https://placehold.co/120x40.png?text={name}",
                "dataAiHint": hint,
                "source": "CargoFive (Simulado)",
            }
        )
    return rates


def _air_rates(
    origin: str, destination: str, rng: random.Random, stamp: int
) -> List[Dict[str, Any]]:
    base = 7.0 if _touches_china(origin, destination) else 4.5
    rates = []
    for name, hint in AIR_CARRIERS:
        cost = base + rng.random() * 1.5
        rates.append(
            {
                "id": f"simulated-air-{name}-{stamp}",
                "carrier": name,
                "origin": origin,
                "destination": destination,
                "transitTime": f"{1 + rng.randrange(3)} dias",
                "cost": f"USD {cost:.2f}/kg",
                "costValue": cost,
                "carrierLogo": "https://placehold.co/120x40.png?text=" + name.replace(" ", "", 1),
                "dataAiHint": hint,
                "source": "CargoAI (Simulado)",
                "flightDetails": f"Voo Direto, {rng.randrange(3) + 1}x por semana",
            }
        )
    return rates


def get_freight_rates(
    form: Mapping[str, Any], rng: Optional[random.Random] = None
) -> List[Dict[str, Any]]:
    """Ocean rates for every origin/destination pair, cheapest first."""

    rng = rng or random.Random()
    stamp = int(time.time() * 1000)
    results: List[Dict[str, Any]] = []
    for origin, destination in _pairs(form):
        logger.info("Simulated ocean rates for %s -> %s", origin, destination)
        results.extend(_ocean_rates(form, origin, destination, rng, stamp))
    return sorted(results, key=lambda r: r["costValue"])


def get_air_freight_rates(
    form: Mapping[str, Any], rng: Optional[random.Random] = None
) -> List[Dict[str, Any]]:
    """Air rates per kg for every origin/destination pair, cheapest first."""

    rng = rng or random.Random()
    stamp = int(time.time() * 1000)
    results: List[Dict[str, Any]] = []
    for origin, destination in _pairs(form):
        logger.info("Simulated air rates for %s -> %s", origin, destination)
        results.extend(_air_rates(origin, destination, rng, stamp))
    return sorted(results, key=lambda r: r["costValue"])


__all__ = ["get_air_freight_rates", "get_freight_rates", "split_locations"]
