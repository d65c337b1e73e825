"""Commission control for partners flagged as ``comissionado``.

Each commission earner has a :class:`~carga_common.partners.CommissionAgreement`
naming the clients it brings in. Every shipment of those clients yields a
commission computed from the shipment profit in BRL. A commission counts as
paid once the ledger holds a matching debit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .financials import FinancialEntry
from .partners import Partner
from .shipments import QuoteCharge, Shipment

OPEN = "Em Aberto"
PAID = "Pago"

_HUNDRED = Decimal("100")


class CommissionError(ValueError):
    """The commission cannot be paid."""


def _brl_rate(currency: str, rates: Mapping[str, Decimal]) -> Decimal:
    if currency == "BRL":
        return Decimal("1")
    return rates.get(currency) or Decimal("1")


def charge_profit_brl(charge: QuoteCharge, rates: Mapping[str, Decimal]) -> Decimal:
    """Sale minus cost of ``charge``, both converted at plain PTAX."""

    sale = charge.sale * _brl_rate(charge.sale_currency, rates)
    cost = charge.cost * _brl_rate(charge.cost_currency, rates)
    return sale - cost


def is_commission_paid(
    entries: Iterable[FinancialEntry], partner_name: str, shipment_id: str
) -> bool:
    return any(
        entry.type == "debit"
        and entry.process_id == shipment_id
        and entry.partner == partner_name
        and "comissão" in (entry.description or "").lower()
        for entry in entries
    )


@dataclass(slots=True)
class CommissionableShipment:
    shipment_id: str
    customer: str
    profit_brl: Decimal
    commission_rate: Decimal
    commission_value: Decimal
    status: str
    charges: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shipmentId": self.shipment_id,
            "customer": self.customer,
            "profitBRL": float(self.profit_brl),
            "commissionRate": float(self.commission_rate),
            "commissionValue": float(self.commission_value),
            "status": self.status,
            "charges": self.charges,
        }


@dataclass(slots=True)
class CommissionSummary:
    partner: Partner
    shipments: List[CommissionableShipment]

    @property
    def total_commission(self) -> Decimal:
        return sum((s.commission_value for s in self.shipments), Decimal())

    @property
    def total_paid(self) -> Decimal:
        return sum(
            (s.commission_value for s in self.shipments if s.status == PAID), Decimal()
        )

    @property
    def total_pending(self) -> Decimal:
        return self.total_commission - self.total_paid

    def find(self, shipment_id: str) -> Optional[CommissionableShipment]:
        return next((s for s in self.shipments if s.shipment_id == shipment_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "partnerId": self.partner.id,
            "partnerName": self.partner.name,
            "shipments": [s.to_dict() for s in self.shipments],
            "totalCommission": float(self.total_commission),
            "totalPaid": float(self.total_paid),
            "totalPending": float(self.total_pending),
        }


def commission_partners(partners: Iterable[Partner]) -> List[Partner]:
    """Commission earners whose agreement sets a non-zero amount."""

    return [
        p
        for p in partners
        if p.has_role("comissionado")
        and p.commission_agreement is not None
        and p.commission_agreement.amount
    ]


def _commissionable(
    partner: Partner,
    shipment: Shipment,
    entries: List[FinancialEntry],
    rates: Mapping[str, Decimal],
) -> CommissionableShipment:
    agreement = partner.commission_agreement
    charges = []
    profit = Decimal()
    for charge in shipment.charges:
        charge_profit = charge_profit_brl(charge, rates)
        profit += charge_profit
        charges.append({**charge.to_dict(), "profitBRL": float(charge_profit)})

    if agreement.unit == "porcentagem_lucro":
        value = profit * agreement.amount / _HUNDRED
    else:
        value = agreement.amount
    paid = is_commission_paid(entries, partner.name, shipment.id)
    return CommissionableShipment(
        shipment_id=shipment.id,
        customer=shipment.customer,
        profit_brl=profit,
        commission_rate=agreement.amount,
        commission_value=value,
        status=PAID if paid else OPEN,
        charges=charges,
    )


def commission_summaries(
    partners: Iterable[Partner],
    shipments: Iterable[Shipment],
    entries: Iterable[FinancialEntry],
    rates: Mapping[str, Decimal],
) -> List[CommissionSummary]:
    """Commission owed to every earner, one line per client shipment.

    Args:
        partners: Registered partners; only commission earners are reported.
        shipments: Shipments whose ``customer`` may be one of the earners'
            commission clients.
        entries: Ledger used to decide which commissions are already paid.
        rates: BRL value of one unit of each foreign currency.
    """

    shipments = list(shipments)
    entries = list(entries)
    summaries = []
    for partner in commission_partners(partners):
        clients = set(partner.commission_agreement.commission_clients)
        summaries.append(
            CommissionSummary(
                partner=partner,
                shipments=[
                    _commissionable(partner, shipment, entries, rates)
                    for shipment in shipments
                    if shipment.customer in clients
                ],
            )
        )
    return summaries


def commission_payment_entry(
    partner: Partner, item: CommissionableShipment, now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Paid debit recording the commission of ``item`` in the ledger.

    Raises:
        CommissionError: When the commission was already paid.
    """

    if item.status == PAID:
        raise CommissionError(
            f"A comissão do processo {item.shipment_id} já foi paga para {partner.name}."
        )
    now = now or datetime.now()
    return {
        "type": "debit",
        "partner": partner.name,
        "invoiceId": f"COM-{item.shipment_id}",
        "dueDate": now.isoformat(),
        "amount": float(item.commission_value),
        "currency": "BRL",
        "processId": item.shipment_id,
        "status": "Pago",
        "expenseType": "Operacional",
        "description": f"Pagamento de comissão ref. processo {item.shipment_id}",
    }


__all__ = [
    "CommissionError",
    "CommissionSummary",
    "CommissionableShipment",
    "charge_profit_brl",
    "commission_partners",
    "commission_payment_entry",
    "commission_summaries",
    "is_commission_paid",
]
