"""PTAX exchange rates against BRL and the cost sheet conversion."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable

from carga_common.partners import Partner, find_partner_by_name
from carga_common.shipments import QuoteCharge

logger = logging.getLogger(__name__)

# Closing PTAX of a reference day; no live feed is wired yet.
PTAX_RATES: Dict[str, Decimal] = {
    "USD": Decimal("5.43"),
    "EUR": Decimal("5.82"),
    "JPY": Decimal("0.034"),
    "CHF": Decimal("6.05"),
    "GBP": Decimal("6.85"),
}

_HUNDRED = Decimal("100")


def get_rates() -> Dict[str, Decimal]:
    """Return a copy of the BRL rates for every supported currency."""

    logger.debug("Serving PTAX exchange rates for %s", ", ".join(PTAX_RATES))
    return dict(PTAX_RATES)


def agio_rate(currency: str, agio: Any = 0) -> Decimal:
    """PTAX plus the partner's agio percentage; BRL and unknown codes use 1."""

    code = (currency or "BRL").upper()
    if code == "BRL":
        return Decimal("1")
    ptax = PTAX_RATES.get(code, Decimal("1"))
    return ptax * (1 + Decimal(str(agio or 0)) / _HUNDRED)


def cost_sheet_totals(
    charges: Iterable[QuoteCharge], partners: Iterable[Partner]
) -> Dict[str, Decimal]:
    """Cost, sale and profit of ``charges`` in BRL.

    Sales convert with the agio of the charged party (``sacado``) and costs
    with the agio of the supplier; partners not registered have no agio.
    """

    partners = list(partners)
    total_cost = Decimal()
    total_sale = Decimal()
    for charge in charges:
        customer = find_partner_by_name(partners, charge.sacado or "")
        supplier = find_partner_by_name(partners, charge.supplier)
        customer_agio = customer.exchange_rate_agio if customer else 0
        supplier_agio = supplier.exchange_rate_agio if supplier else 0
        total_sale += charge.sale * agio_rate(charge.sale_currency, customer_agio)
        total_cost += charge.cost * agio_rate(charge.cost_currency, supplier_agio)
    return {
        "totalCostBRL": total_cost,
        "totalSaleBRL": total_sale,
        "totalProfitBRL": total_sale - total_cost,
    }


__all__ = [
    "PTAX_RATES",
    "agio_rate",
    "cost_sheet_totals",
    "get_rates",
]
