"""Demurrage and LTI tariff tables with tiered per-day pricing.

Carriers charge demurrage per container per day in escalating periods. The
same shape is used for the sale side (the LTI tariff charged to clients), so
one tiering routine prices both and the profit is their difference.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .financials import BankAccount, find_account
from .shipments import ContainerDetail, Shipment, parse_leading_int

CONTAINER_CATEGORIES = ("dry", "reefer", "special")


@dataclass(slots=True)
class TariffPeriod:
    """Per-day rate applied from ``from_day`` up to ``to_day`` inclusive."""

    from_day: int
    rate: Decimal
    to_day: Optional[int] = None

    @property
    def label(self) -> str:
        upper = self.to_day if self.to_day is not None else "..."
        return f"De {self.from_day} a {upper} dias"

    def span(self) -> Optional[int]:
        if self.to_day is None:
            return None
        return self.to_day - self.from_day + 1

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TariffPeriod":
        to_day = payload.get("to")
        return cls(
            from_day=int(payload["from"]),
            to_day=int(to_day) if to_day is not None else None,
            rate=Decimal(str(payload["rate"])),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"from": self.from_day, "rate": float(self.rate)}
        if self.to_day is not None:
            payload["to"] = self.to_day
        return payload


@dataclass(slots=True)
class DemurrageTariff:
    """Carrier cost tariff for a container category."""

    id: str
    carrier: str
    container_type: str
    cost_periods: List[TariffPeriod] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DemurrageTariff":
        return cls(
            id=str(payload["id"]),
            carrier=str(payload["carrier"]),
            container_type=str(payload["containerType"]),
            cost_periods=[TariffPeriod.from_dict(p) for p in payload.get("costPeriods", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "carrier": self.carrier,
            "containerType": self.container_type,
            "costPeriods": [p.to_dict() for p in self.cost_periods],
        }


@dataclass(slots=True)
class LtiTariff:
    """Sale tariff charged to clients for a container category."""

    id: str
    container_type: str
    sale_periods: List[TariffPeriod] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LtiTariff":
        return cls(
            id=str(payload["id"]),
            container_type=str(payload["containerType"]),
            sale_periods=[TariffPeriod.from_dict(p) for p in payload.get("salePeriods", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "containerType": self.container_type,
            "salePeriods": [p.to_dict() for p in self.sale_periods],
        }


@dataclass(slots=True)
class TierLine:
    """One priced tier of a tiered charge."""

    label: str
    days: int
    rate: Decimal
    total: Decimal


@dataclass(slots=True)
class DemurrageQuote:
    """Cost, sale and profit for a number of overdue days."""

    days: int
    cost_lines: List[TierLine]
    sale_lines: List[TierLine]

    @property
    def total_cost(self) -> Decimal:
        return sum((line.total for line in self.cost_lines), Decimal())

    @property
    def total_sale(self) -> Decimal:
        return sum((line.total for line in self.sale_lines), Decimal())

    @property
    def profit(self) -> Decimal:
        return self.total_sale - self.total_cost


def calculate_tiered_charge(days: int, periods: Sequence[TariffPeriod]) -> List[TierLine]:
    """Price ``days`` against ``periods`` in order.

    Each period consumes at most its own span of days; an open-ended period
    consumes everything that remains. Periods after the days run out are
    not listed.
    """

    remaining = max(0, int(days))
    lines: List[TierLine] = []
    for period in periods:
        if remaining <= 0:
            break
        span = period.span()
        consumed = remaining if span is None else min(remaining, span)
        lines.append(
            TierLine(
                label=period.label,
                days=consumed,
                rate=period.rate,
                total=period.rate * consumed,
            )
        )
        remaining -= consumed
    return lines


def container_category(container_type: str) -> str:
    """Map a container type such as ``40'HC`` or ``40'RF`` to a tariff category."""

    normalized = (container_type or "").upper()
    if any(token in normalized for token in ("RF", "REEFER", "NOR")):
        return "reefer"
    if any(token in normalized for token in ("OT", "FR", "FLAT", "OPEN")):
        return "special"
    return "dry"


def find_demurrage_tariff(
    tariffs: Iterable[DemurrageTariff], carrier: str, category: str
) -> Optional[DemurrageTariff]:
    """Return the carrier tariff for ``category``.

    Carrier names are matched loosely ("Maersk Line" matches "Maersk"). When
    the carrier has no tariff for the category, any tariff registered for the
    category is used.
    """

    candidates = [t for t in tariffs if t.container_type == category]
    carrier_lower = (carrier or "").lower()
    for tariff in candidates:
        name = tariff.carrier.lower()
        if carrier_lower and (name in carrier_lower or carrier_lower in name):
            return tariff
    return candidates[0] if candidates else None


def find_lti_tariff(tariffs: Iterable[LtiTariff], category: str) -> Optional[LtiTariff]:
    for tariff in tariffs:
        if tariff.container_type == category:
            return tariff
    return None


def demurrage_cost_and_sale(
    days: int,
    *,
    carrier: str,
    container_type: str,
    demurrage_tariffs: Iterable[DemurrageTariff],
    lti_tariffs: Iterable[LtiTariff],
) -> DemurrageQuote:
    """Price overdue days on both the carrier and the client tariff."""

    category = container_category(container_type)
    cost_tariff = find_demurrage_tariff(demurrage_tariffs, carrier, category)
    sale_tariff = find_lti_tariff(lti_tariffs, category)
    cost_lines = calculate_tiered_charge(days, cost_tariff.cost_periods) if cost_tariff else []
    sale_lines = calculate_tiered_charge(days, sale_tariff.sale_periods) if sale_tariff else []
    return DemurrageQuote(days=max(0, int(days)), cost_lines=cost_lines, sale_lines=sale_lines)


def breakdown_total_label(days: int) -> str:
    return f"Total Demurrage ({days} dias)"


class DemurrageInvoiceError(ValueError):
    """Raised when a demurrage invoice cannot be issued."""

    def __init__(self, title: str, message: str):
        super().__init__(message)
        self.title = title


@dataclass(slots=True)
class DemurrageItem:
    """Free-time window of one container on one shipment."""

    id: str
    shipment: Shipment
    container: ContainerDetail
    type: str
    start_date: date
    end_date: date
    effective_end_date: Optional[date]
    free_days: int
    overdue_days: int
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "shipmentId": self.shipment.id,
            "customer": self.shipment.customer,
            "carrier": self.shipment.carrier,
            "container": self.container.to_dict(),
            "type": self.type,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "effectiveEndDate": (
                self.effective_end_date.isoformat() if self.effective_end_date else None
            ),
            "freeDays": self.free_days,
            "overdueDays": self.overdue_days,
            "status": self.status,
        }


def _window_status(overdue: int, end: date, today: date) -> str:
    if overdue > 0:
        return "overdue"
    if (end - today).days <= 3:
        return "at_risk"
    return "ok"


def _window(
    shipment: Shipment,
    container: ContainerDetail,
    kind: str,
    start: date,
    effective_end: Optional[date],
    free_days: int,
    today: date,
) -> DemurrageItem:
    end = start + timedelta(days=free_days - 1)
    reference = effective_end or today
    overdue = max(0, (reference - end).days)
    return DemurrageItem(
        id=f"{shipment.id}-{container.number}-{kind}",
        shipment=shipment,
        container=container,
        type=kind,
        start_date=start,
        end_date=end,
        effective_end_date=effective_end,
        free_days=free_days,
        overdue_days=overdue,
        status=_window_status(overdue, end, today),
    )


def build_demurrage_items(
    shipments: Iterable[Shipment], today: Optional[date] = None
) -> List[DemurrageItem]:
    """List demurrage (import) and detention (export) windows per container.

    Import windows start at the ETA and end at the container return date.
    Export windows start when the empty container was picked up and end at
    the gate in. Open windows are measured against ``today``.
    """

    today = today or date.today()
    items: List[DemurrageItem] = []
    for shipment in shipments:
        for container in shipment.containers:
            free_days = parse_leading_int(
                container.free_time or shipment.details.free_time, 7
            )
            if shipment.is_import and shipment.eta:
                returned = container.effective_return_date
                items.append(
                    _window(
                        shipment,
                        container,
                        "demurrage",
                        shipment.eta.date(),
                        returned.date() if returned else None,
                        free_days,
                        today,
                    )
                )
            if not shipment.is_import and shipment.etd:
                pickup = shipment.find_milestone("retirada do vazio")
                if pickup is None or pickup.effective_date is None:
                    continue
                gate_in = shipment.find_milestone("gate in")
                gate_in_date = gate_in.effective_date if gate_in else None
                items.append(
                    _window(
                        shipment,
                        container,
                        "detention",
                        pickup.effective_date.date(),
                        gate_in_date.date() if gate_in_date else None,
                        free_days,
                        today,
                    )
                )
    return items


def build_demurrage_invoice(
    item: DemurrageItem,
    quote: DemurrageQuote,
    accounts: Iterable[BankAccount],
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Return the receivable entry (without id) billing ``quote`` to the client.

    Raises:
        DemurrageInvoiceError: Nothing to charge, or no USD account to link.
    """

    if quote.total_sale <= 0:
        raise DemurrageInvoiceError(
            "Fatura Vazia",
            "Não é possível gerar uma fatura sem valor de demurrage a cobrar.",
        )
    usd_account = find_account(accounts, currency="USD")
    if usd_account is None:
        raise DemurrageInvoiceError(
            "Conta Bancária Não Encontrada",
            "Nenhuma conta em USD encontrada para vincular a fatura.",
        )
    today = today or date.today()
    due = datetime.combine(today + timedelta(days=30), datetime.min.time())
    return {
        "type": "credit",
        "partner": item.shipment.customer,
        "invoiceId": f"DEM-{item.container.number}",
        "status": "Aberto",
        "dueDate": due.isoformat(),
        "amount": float(quote.total_sale),
        "currency": "USD",
        "processId": item.shipment.id,
        "accountId": usd_account.id,
    }


def _periods(*rows: tuple) -> List[Dict[str, Any]]:
    periods = []
    for row in rows:
        start, end, rate = row
        period: Dict[str, Any] = {"from": start, "rate": rate}
        if end is not None:
            period["to"] = end
        periods.append(period)
    return periods


def initial_demurrage_tariffs() -> List[Dict[str, Any]]:
    """Seed carrier cost tariffs."""

    return [
        {
            "id": "tariff-maersk-dry",
            "carrier": "Maersk",
            "containerType": "dry",
            "costPeriods": _periods((1, 5, 75), (6, 10, 150), (11, None, 300)),
        },
        {
            "id": "tariff-maersk-reefer",
            "carrier": "Maersk",
            "containerType": "reefer",
            "costPeriods": _periods((1, 3, 150), (4, 7, 300), (8, None, 600)),
        },
        {
            "id": "tariff-msc-dry",
            "carrier": "MSC",
            "containerType": "dry",
            "costPeriods": _periods((1, 4, 80), (5, 9, 160), (10, None, 320)),
        },
    ]


def initial_lti_tariffs() -> List[Dict[str, Any]]:
    """Seed client sale tariffs."""

    return [
        {
            "id": "lti-tariff-dry",
            "containerType": "dry",
            "salePeriods": _periods((1, 5, 100), (6, 10, 200), (11, None, 400)),
        },
        {
            "id": "lti-tariff-reefer",
            "containerType": "reefer",
            "salePeriods": _periods((1, 3, 200), (4, 7, 400), (8, None, 800)),
        },
        {
            "id": "lti-tariff-special",
            "containerType": "special",
            "salePeriods": _periods((1, 3, 250), (4, 7, 500), (8, None, 1000)),
        },
    ]


__all__ = [
    "CONTAINER_CATEGORIES",
    "DemurrageInvoiceError",
    "DemurrageItem",
    "DemurrageQuote",
    "DemurrageTariff",
    "LtiTariff",
    "TariffPeriod",
    "TierLine",
    "breakdown_total_label",
    "build_demurrage_invoice",
    "build_demurrage_items",
    "calculate_tiered_charge",
    "container_category",
    "find_demurrage_tariff",
    "find_lti_tariff",
    "initial_demurrage_tariffs",
    "initial_lti_tariffs",
    "demurrage_cost_and_sale",
]
