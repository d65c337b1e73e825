"""Shipment (process) models and the operational rules applied to them.

A shipment is opened from an approved quote and tracked through a list of
milestones. Its JSON form mirrors what the back office stores, so unknown
keys are carried in ``extras`` and written back unchanged.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from .dates import format_br, isoformat, parse_datetime

MILESTONE_STATUSES = ("pending", "in_progress", "completed")
DOCUMENT_NAMES = (
    "Draft MBL",
    "Draft HBL",
    "Original MBL",
    "Original HBL",
    "Invoice",
    "Packing List",
    "Extrato DUE",
    "Negociação NET",
    "Outros",
)
DOCUMENT_STATUSES = ("pending", "uploaded", "approved")
CHECKLIST_DOCUMENTS = ("Draft MBL", "Draft HBL", "Original MBL", "Original HBL")

IMPORT_MILESTONE_DUE_DAYS: Dict[str, int] = {
    "Instruções de Embarque Enviadas ao Agente": 0,
    "Carga Pronta": 7,
    "Booking Confirmado": 10,
    "Cut Off Documental": 12,
    "Container Gate In (Entregue no Porto)": 13,
    "Confirmação de Embarque": 14,
    "Documentos Originais Emitidos": 16,
    "Transbordo": 0,
    "CE Mercante Lançado": 0,
    "Chegada ao Destino": 0,
}

EXPORT_MILESTONE_DUE_DAYS: Dict[str, int] = {
    "Confirmação de Booking": 2,
    "Retirada do Vazio": 3,
    "Coleta da Carga (se aplicável)": 4,
    "Cut Off Documental": 6,
    "Desembaraço de Exportação": 7,
    "Embarque": 8,
    "Chegada no Destino": 0,
    "Confirmação de Entrega": 2,
}

LATE_DRAFT_FEE = Decimal("50")
COMPANY_NAME = "CargaInteligente"


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def _dt(value: Any) -> Optional[str]:
    parsed = parse_datetime(value)
    return isoformat(parsed) if parsed else None


def parse_leading_int(text: Optional[str], default: int) -> int:
    """Return the digits of ``text`` as an integer or ``default``."""

    digits = re.sub(r"\D", "", text or "")
    return int(digits) if digits else default


def parse_transit_days(text: Optional[str], default: int = 30) -> int:
    """Upper bound of a transit range such as ``"25-30 dias"``."""

    last = (text or "").split("-")[-1]
    match = re.match(r"\s*(\d+)", last)
    return int(match.group(1)) if match else default


@dataclass(slots=True)
class QuoteCharge:
    """Cost and sale line negotiated on a quote and carried by the shipment."""

    id: str
    name: str
    type: str
    cost: Decimal
    cost_currency: str
    sale: Decimal
    sale_currency: str
    supplier: str
    approval_status: str = "aprovada"
    sacado: Optional[str] = None
    container_type: Optional[str] = None
    local_pagamento: Optional[str] = None
    justification: Optional[str] = None
    financial_entry_id: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "QuoteCharge":
        return cls(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            type=str(payload.get("type", "")),
            cost=_decimal(payload.get("cost", 0)),
            cost_currency=str(payload.get("costCurrency", "BRL")),
            sale=_decimal(payload.get("sale", 0)),
            sale_currency=str(payload.get("saleCurrency", "BRL")),
            supplier=str(payload.get("supplier", "")),
            approval_status=str(payload.get("approvalStatus", "aprovada")),
            sacado=payload.get("sacado"),
            container_type=payload.get("containerType"),
            local_pagamento=payload.get("localPagamento"),
            justification=payload.get("justification"),
            financial_entry_id=payload.get("financialEntryId"),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "cost": float(self.cost),
            "costCurrency": self.cost_currency,
            "sale": float(self.sale),
            "saleCurrency": self.sale_currency,
            "supplier": self.supplier,
            "approvalStatus": self.approval_status,
        }
        optional = {
            "sacado": self.sacado,
            "containerType": self.container_type,
            "localPagamento": self.local_pagamento,
            "justification": self.justification,
            "financialEntryId": self.financial_entry_id,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        return payload


@dataclass(slots=True)
class QuoteDetails:
    cargo: str = ""
    transit_time: str = ""
    validity: str = ""
    free_time: str = ""
    incoterm: str = ""

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "QuoteDetails":
        payload = payload or {}
        return cls(
            cargo=str(payload.get("cargo", "")),
            transit_time=str(payload.get("transitTime", "")),
            validity=str(payload.get("validity", "")),
            free_time=str(payload.get("freeTime", "")),
            incoterm=str(payload.get("incoterm", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cargo": self.cargo,
            "transitTime": self.transit_time,
            "validity": self.validity,
            "freeTime": self.free_time,
            "incoterm": self.incoterm,
        }


@dataclass(slots=True)
class Milestone:
    """Operational step with a predicted and an effective date."""

    name: str
    predicted_date: Optional[datetime]
    status: str = "pending"
    effective_date: Optional[datetime] = None
    details: Optional[str] = None
    is_transshipment: bool = False

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Milestone":
        return cls(
            name=str(payload.get("name", "")),
            status=str(payload.get("status", "pending")),
            predicted_date=parse_datetime(payload.get("predictedDate") or payload.get("dueDate")),
            effective_date=parse_datetime(
                payload.get("effectiveDate") or payload.get("completedDate")
            ),
            details=payload.get("details"),
            is_transshipment=bool(payload.get("isTransshipment", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "status": self.status,
            "predictedDate": isoformat(self.predicted_date),
            "effectiveDate": isoformat(self.effective_date),
            "isTransshipment": self.is_transshipment,
        }
        if self.details is not None:
            payload["details"] = self.details
        return payload


@dataclass(slots=True)
class ContainerDetail:
    id: str
    number: str
    type: str = ""
    seal: str = ""
    tare: str = ""
    gross_weight: str = ""
    volumes: Optional[str] = None
    measurement: Optional[str] = None
    free_time: Optional[str] = None
    effective_return_date: Optional[datetime] = None
    effective_gate_in_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ContainerDetail":
        return cls(
            id=str(payload.get("id", "")),
            number=str(payload.get("number", "")),
            type=str(payload.get("type", "")),
            seal=str(payload.get("seal", "")),
            tare=str(payload.get("tare", "")),
            gross_weight=str(payload.get("grossWeight", "")),
            volumes=payload.get("volumes"),
            measurement=payload.get("measurement"),
            free_time=payload.get("freeTime"),
            effective_return_date=parse_datetime(payload.get("effectiveReturnDate")),
            effective_gate_in_date=parse_datetime(payload.get("effectiveGateInDate")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "type": self.type,
            "seal": self.seal,
            "tare": self.tare,
            "grossWeight": self.gross_weight,
            "volumes": self.volumes,
            "measurement": self.measurement,
            "freeTime": self.free_time,
            "effectiveReturnDate": isoformat(self.effective_return_date),
            "effectiveGateInDate": isoformat(self.effective_gate_in_date),
        }


@dataclass(slots=True)
class BLDraftData:
    """Bill of lading draft submitted by the client through the portal."""

    shipper: str
    consignee: str
    notify: str
    marks_and_numbers: str
    description_of_goods: str
    gross_weight: str
    measurement: str
    bl_type: str = "original"
    ncms: List[str] = field(default_factory=list)
    due: str = ""
    containers: List[Dict[str, Any]] = field(default_factory=list)
    vgm_details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BLDraftData":
        return cls(
            shipper=str(payload.get("shipper", "")),
            consignee=str(payload.get("consignee", "")),
            notify=str(payload.get("notify", "")),
            marks_and_numbers=str(payload.get("marksAndNumbers", "")),
            description_of_goods=str(payload.get("descriptionOfGoods", "")),
            gross_weight=str(payload.get("grossWeight", "")),
            measurement=str(payload.get("measurement", "")),
            bl_type=str(payload.get("blType", "original")),
            ncms=[str(n) for n in payload.get("ncms", [])],
            due=str(payload.get("due", "")),
            containers=[dict(c) for c in payload.get("containers", [])],
            vgm_details=dict(payload.get("vgmDetails", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shipper": self.shipper,
            "consignee": self.consignee,
            "notify": self.notify,
            "marksAndNumbers": self.marks_and_numbers,
            "descriptionOfGoods": self.description_of_goods,
            "grossWeight": self.gross_weight,
            "measurement": self.measurement,
            "blType": self.bl_type,
            "ncms": list(self.ncms),
            "due": self.due,
            "containers": [dict(c) for c in self.containers],
            "vgmDetails": dict(self.vgm_details),
        }


_SHIPMENT_KEYS = {
    "id": "id",
    "quoteId": "quote_id",
    "origin": "origin",
    "destination": "destination",
    "customer": "customer",
    "shipper": "shipper",
    "consignee": "consignee",
    "agent": "agent",
    "responsibleUser": "responsible_user",
    "carrier": "carrier",
    "bookingNumber": "booking_number",
    "vesselName": "vessel_name",
    "voyageNumber": "voyage_number",
    "masterBillNumber": "master_bill_number",
    "houseBillNumber": "house_bill_number",
    "blType": "bl_type",
    "etd": "etd",
    "eta": "eta",
    "charges": "charges",
    "details": "details",
    "milestones": "milestones",
    "documents": "documents",
    "containers": "containers",
    "transshipments": "transshipments",
    "blDraftData": "bl_draft_data",
    "blDraftHistory": "bl_draft_history",
    "chatMessages": "chat_messages",
}


@dataclass(slots=True)
class Shipment:
    """Operational process opened from an approved quote."""

    id: str
    origin: str
    destination: str
    customer: str
    quote_id: str = ""
    shipper: Dict[str, Any] = field(default_factory=dict)
    consignee: Dict[str, Any] = field(default_factory=dict)
    agent: Optional[Dict[str, Any]] = None
    responsible_user: Optional[str] = None
    carrier: Optional[str] = None
    booking_number: Optional[str] = None
    vessel_name: Optional[str] = None
    voyage_number: Optional[str] = None
    master_bill_number: Optional[str] = None
    house_bill_number: Optional[str] = None
    bl_type: Optional[str] = None
    etd: Optional[datetime] = None
    eta: Optional[datetime] = None
    charges: List[QuoteCharge] = field(default_factory=list)
    details: QuoteDetails = field(default_factory=QuoteDetails)
    milestones: List[Milestone] = field(default_factory=list)
    documents: List[Dict[str, Any]] = field(default_factory=list)
    containers: List[ContainerDetail] = field(default_factory=list)
    transshipments: List[Dict[str, Any]] = field(default_factory=list)
    bl_draft_data: Optional[BLDraftData] = None
    bl_draft_history: Optional[Dict[str, Any]] = None
    chat_messages: List[Dict[str, Any]] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_import(self) -> bool:
        return "BR" in (self.destination or "").upper()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Shipment":
        draft = payload.get("blDraftData")
        return cls(
            id=str(payload["id"]),
            quote_id=str(payload.get("quoteId", "")),
            origin=str(payload.get("origin", "")),
            destination=str(payload.get("destination", "")),
            customer=str(payload.get("customer", "")),
            shipper=dict(payload.get("shipper") or {}),
            consignee=dict(payload.get("consignee") or {}),
            agent=dict(payload["agent"]) if payload.get("agent") else None,
            responsible_user=payload.get("responsibleUser"),
            carrier=payload.get("carrier"),
            booking_number=payload.get("bookingNumber"),
            vessel_name=payload.get("vesselName"),
            voyage_number=payload.get("voyageNumber"),
            master_bill_number=payload.get("masterBillNumber"),
            house_bill_number=payload.get("houseBillNumber"),
            bl_type=payload.get("blType"),
            etd=parse_datetime(payload.get("etd")),
            eta=parse_datetime(payload.get("eta")),
            charges=[QuoteCharge.from_dict(c) for c in payload.get("charges", [])],
            details=QuoteDetails.from_dict(payload.get("details")),
            milestones=[Milestone.from_dict(raw) for raw in payload.get("milestones", [])],
            documents=[dict(d) for d in payload.get("documents", [])],
            containers=[ContainerDetail.from_dict(c) for c in payload.get("containers") or []],
            transshipments=[dict(t) for t in payload.get("transshipments") or []],
            bl_draft_data=BLDraftData.from_dict(draft) if draft else None,
            bl_draft_history=payload.get("blDraftHistory"),
            chat_messages=[dict(m) for m in payload.get("chatMessages") or []],
            extras={k: v for k, v in payload.items() if k not in _SHIPMENT_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extras)
        payload.update(
            {
                "id": self.id,
                "quoteId": self.quote_id,
                "origin": self.origin,
                "destination": self.destination,
                "customer": self.customer,
                "shipper": self.shipper,
                "consignee": self.consignee,
                "agent": self.agent,
                "responsibleUser": self.responsible_user,
                "carrier": self.carrier,
                "bookingNumber": self.booking_number,
                "vesselName": self.vessel_name,
                "voyageNumber": self.voyage_number,
                "masterBillNumber": self.master_bill_number,
                "houseBillNumber": self.house_bill_number,
                "blType": self.bl_type,
                "etd": _dt(self.etd),
                "eta": _dt(self.eta),
                "charges": [c.to_dict() for c in self.charges],
                "details": self.details.to_dict(),
                "milestones": [m.to_dict() for m in self.milestones],
                "documents": self.documents,
                "containers": [c.to_dict() for c in self.containers],
                "transshipments": self.transshipments,
                "blDraftData": self.bl_draft_data.to_dict() if self.bl_draft_data else None,
                "blDraftHistory": self.bl_draft_history,
                "chatMessages": self.chat_messages,
            }
        )
        return payload

    def find_milestone(self, fragment: str) -> Optional[Milestone]:
        """First milestone whose name contains ``fragment`` (case-insensitive)."""

        needle = fragment.lower()
        for milestone in self.milestones:
            if needle in milestone.name.lower():
                return milestone
        return None


def _at_midnight(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def generate_initial_milestones(
    is_import: bool, transit_time: str, free_time: str, created: datetime
) -> List[Milestone]:
    """Build the default milestone plan for a new shipment.

    Import plans predict departure 14 days after creation and add a container
    return reminder two days before free time ends. Export plans predict
    departure after 8 days and add a gate-in deadline two days before the
    documentary cut off.
    """

    created = _at_midnight(created)
    transit = parse_transit_days(transit_time)
    free_days = parse_leading_int(free_time, 7)

    milestones: List[Milestone] = []
    if is_import:
        etd = created + timedelta(days=IMPORT_MILESTONE_DUE_DAYS["Confirmação de Embarque"])
        eta = etd + timedelta(days=transit)
        free_time_end = eta + timedelta(days=free_days - 1)
        for name, offset in IMPORT_MILESTONE_DUE_DAYS.items():
            if name == "Chegada ao Destino":
                predicted = eta
            elif name == "CE Mercante Lançado":
                predicted = eta - timedelta(days=10)
            else:
                predicted = created + timedelta(days=offset)
            milestones.append(Milestone(name=name, predicted_date=predicted))
        milestones.append(
            Milestone(
                name="Verificar Devolução do Contêiner",
                predicted_date=free_time_end - timedelta(days=2),
                details=f"Free time termina em {format_br(free_time_end)}",
            )
        )
    else:
        etd = created + timedelta(days=EXPORT_MILESTONE_DUE_DAYS["Embarque"])
        eta = etd + timedelta(days=transit)
        for name, offset in EXPORT_MILESTONE_DUE_DAYS.items():
            if name == "Chegada no Destino":
                predicted = eta
            elif name == "Confirmação de Entrega":
                predicted = eta + timedelta(days=offset)
            else:
                predicted = created + timedelta(days=offset)
            milestones.append(Milestone(name=name, predicted_date=predicted))
        cutoff = created + timedelta(days=EXPORT_MILESTONE_DUE_DAYS["Cut Off Documental"])
        milestones.append(
            Milestone(
                name="Prazo de Entrega (Gate In)",
                predicted_date=cutoff - timedelta(days=2),
                details="Prazo final para evitar detention.",
            )
        )

    milestones.sort(key=lambda m: m.predicted_date or datetime.min)
    return milestones


def new_process_id(quote_id: str, rng: Optional[random.Random] = None) -> str:
    """``PROC-{quote digits}-{5 random digits}``."""

    rng = rng or random.Random()
    digits = re.sub(r"\D", "", quote_id or "") or "0"
    return f"PROC-{digits}-{rng.randint(10000, 99999)}"


def create_shipment_from_quote(
    quote: Mapping[str, Any],
    *,
    shipper: Optional[Mapping[str, Any]] = None,
    consignee: Optional[Mapping[str, Any]] = None,
    agent: Optional[Mapping[str, Any]] = None,
    responsible_user: Optional[str] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> Shipment:
    """Open a shipment for an approved quote.

    Args:
        quote: Stored quote payload (``id``, ``customer``, ``origin``,
            ``destination``, ``charges`` and ``details``).
        shipper: Partner payload of the shipper, defaults to empty.
        consignee: Partner payload of the consignee, defaults to empty.
        agent: Optional overseas agent partner payload.
        responsible_user: Operator in charge of the process.
        now: Creation timestamp, defaults to :func:`datetime.now`.
        rng: Random source for the process id suffix.

    Returns:
        Shipment: Process with generated milestones and the pending document
        checklist. Import is assumed when the destination is Brazilian.
    """

    created = now or datetime.now()
    details = QuoteDetails.from_dict(quote.get("details"))
    destination = str(quote.get("destination", ""))
    shipment = Shipment(
        id=new_process_id(str(quote.get("id", "")), rng),
        quote_id=str(quote.get("id", "")),
        origin=str(quote.get("origin", "")),
        destination=destination,
        customer=str(quote.get("customer", "")),
        shipper=dict(shipper or {}),
        consignee=dict(consignee or {}),
        agent=dict(agent) if agent else None,
        responsible_user=responsible_user,
        charges=[QuoteCharge.from_dict(c) for c in quote.get("charges", [])],
        details=details,
    )
    shipment.milestones = generate_initial_milestones(
        shipment.is_import, details.transit_time, details.free_time, created
    )
    shipment.documents = [{"name": name, "status": "pending"} for name in CHECKLIST_DOCUMENTS]
    return shipment


def apply_bl_draft(
    shipment: Shipment, draft: BLDraftData, is_late: bool, now: Optional[datetime] = None
) -> Shipment:
    """Store a client BL draft and queue the follow-up milestones.

    Late submissions add a fixed 50 USD draft amendment fee billed to the
    shipment customer.
    """

    now = now or datetime.now()
    shipment.bl_draft_data = draft
    shipment.bl_type = draft.bl_type
    shipment.milestones.append(
        Milestone(
            name="Draft de BL Recebido",
            predicted_date=now,
            effective_date=now,
            details="Draft recebido do cliente. Necessário enviar ao armador.",
        )
    )
    shipment.milestones.append(
        Milestone(
            name="Enviar Draft MBL ao armador",
            predicted_date=now,
            details="Verificar draft do cliente e enviar ao armador.",
        )
    )
    if is_late:
        shipment.charges.append(
            QuoteCharge(
                id=f"late-fee-{int(now.timestamp() * 1000)}",
                name="Taxa de Alteração de Draft Fora do Prazo",
                type="Fixo",
                cost=LATE_DRAFT_FEE,
                cost_currency="USD",
                sale=LATE_DRAFT_FEE,
                sale_currency="USD",
                supplier=COMPANY_NAME,
                sacado=shipment.customer,
            )
        )
    return shipment


_LEADING_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def parse_agreed_rate(text: str) -> tuple[Decimal, str]:
    """Split ``"USD 2,500.00"`` style text into amount and currency.

    Digits and dots are kept; the amount is their leading number, so
    ``"2.500.00"`` reads as ``2.5``.
    """

    cleaned = re.sub(r"[^0-9.]", "", text or "")
    match = _LEADING_NUMBER.match(cleaned)
    amount = Decimal(match.group()) if match else Decimal("0")
    currency = "USD" if "USD" in (text or "").upper() else "BRL"
    return amount, currency


def apply_agent_update(
    shipment: Shipment, data: Mapping[str, Any], now: Optional[datetime] = None
) -> Shipment:
    """Apply booking data sent by the overseas agent through the portal."""

    now = now or datetime.now()
    shipment.booking_number = data.get("bookingNumber")
    vessel, _, voyage = str(data.get("vesselVoyage", "")).partition("/")
    shipment.vessel_name = vessel.strip() or None
    shipment.voyage_number = voyage.strip() or None
    shipment.etd = parse_datetime(data.get("etd"))
    shipment.eta = parse_datetime(data.get("eta"))

    for fragment, value in (
        ("embarque", shipment.etd),
        ("chegada", shipment.eta),
        ("cut off documental", parse_datetime(data.get("docsCutoff"))),
    ):
        milestone = shipment.find_milestone(fragment)
        if milestone is not None and value is not None:
            milestone.predicted_date = value
            milestone.status = "pending"

    amount, currency = parse_agreed_rate(str(data.get("rateAgreed", "")))
    shipment.charges.append(
        QuoteCharge(
            id=f"agent-freight-{int(now.timestamp() * 1000)}",
            name="FRETE INTERNACIONAL (Custo Agente)",
            type="Fixo",
            cost=amount,
            cost_currency=currency,
            sale=amount,
            sale_currency=currency,
            supplier=(shipment.agent or {}).get("name") or "Agente a Confirmar",
            sacado=shipment.customer,
        )
    )
    return shipment


_TRACKING_FIELDS = {f.name for f in fields(Shipment)} - {"id", "extras"}


def merge_tracking_details(shipment: Shipment, details: Mapping[str, Any]) -> Shipment:
    """Overlay carrier tracking data (camelCase keys) onto ``shipment``."""

    merged = shipment.to_dict()
    merged.update({k: v for k, v in details.items() if k != "id"})
    updated = Shipment.from_dict(merged)
    for name in _TRACKING_FIELDS | {"extras"}:
        setattr(shipment, name, getattr(updated, name))
    return shipment


__all__ = [
    "BLDraftData",
    "CHECKLIST_DOCUMENTS",
    "ContainerDetail",
    "DOCUMENT_NAMES",
    "DOCUMENT_STATUSES",
    "EXPORT_MILESTONE_DUE_DAYS",
    "IMPORT_MILESTONE_DUE_DAYS",
    "MILESTONE_STATUSES",
    "Milestone",
    "QuoteCharge",
    "QuoteDetails",
    "Shipment",
    "apply_agent_update",
    "apply_bl_draft",
    "create_shipment_from_quote",
    "generate_initial_milestones",
    "merge_tracking_details",
    "new_process_id",
    "parse_agreed_rate",
    "parse_leading_int",
    "parse_transit_days",
]
