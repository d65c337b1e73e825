"""Rules that schedule alerts and client messages relative to ETD/ETA."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .shipments import Shipment

RULE_MODALS = (
    "IMPORTACAO_MARITIMA",
    "EXPORTACAO_MARITIMA",
    "IMPORTACAO_AEREA",
    "EXPORTACAO_AEREA",
    "TODOS",
)
RULE_TIMINGS = ("ANTES", "DEPOIS")
RULE_MILESTONES = ("ETD", "ETA")
RULE_ACTIONS = ("ALERTA", "EMAIL", "DOCUMENTO", "RELATORIO_STATUS")
RULE_RECIPIENTS = ("CLIENTE", "AGENTE", "OPERACIONAL", "TRANSPORTADORA", "TERMINAL")
SERVICE_CONDITIONS = (
    "DESPACHO_ADUANEIRO",
    "SEGURO_INTERNACIONAL",
    "ENTREGA",
    "TRADING",
    "REDESTINACAO",
)
MIN_CONTENT_LENGTH = 10

# Charge name fragments that reveal a contracted service.
_SERVICE_MARKERS = {
    "DESPACHO_ADUANEIRO": ("DESPACHO ADUANEIRO",),
    "SEGURO_INTERNACIONAL": ("SEGURO",),
    "ENTREGA": ("ENTREGA", "DELIVERY"),
    "TRADING": ("TRADING",),
    "REDESTINACAO": ("REDESTINACAO",),
}


def _fold(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text or "")
    return "".join(c for c in normalized if not unicodedata.combining(c)).upper()


@dataclass(slots=True)
class TaskAutomationRule:
    id: Optional[str]
    modal: str
    days: int
    timing: str
    milestone: str
    action: str
    recipient: str
    content: str
    service_conditions: List[str] = field(default_factory=list)
    client_conditions: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TaskAutomationRule":
        return cls(
            id=payload.get("id"),
            modal=str(payload.get("modal", "TODOS")),
            days=int(payload.get("days", 0)),
            timing=str(payload.get("timing", "ANTES")),
            milestone=str(payload.get("milestone", "ETA")),
            action=str(payload.get("action", "ALERTA")),
            recipient=str(payload.get("recipient", "OPERACIONAL")),
            content=str(payload.get("content", "")),
            service_conditions=list(payload.get("serviceConditions") or []),
            client_conditions=list(payload.get("clientConditions") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "modal": self.modal,
            "days": self.days,
            "timing": self.timing,
            "milestone": self.milestone,
            "action": self.action,
            "recipient": self.recipient,
            "content": self.content,
            "serviceConditions": list(self.service_conditions),
            "clientConditions": list(self.client_conditions),
        }


@dataclass(slots=True)
class DueTask:
    """A rule that fires today for a shipment."""

    rule: TaskAutomationRule
    shipment: Shipment
    reference_date: date

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule.id,
            "shipmentId": self.shipment.id,
            "customer": self.shipment.customer,
            "action": self.rule.action,
            "recipient": self.rule.recipient,
            "content": self.rule.content,
            "referenceDate": self.reference_date.isoformat(),
        }


def shipment_modal(shipment: Shipment) -> str:
    """Rule modal of ``shipment``; air cargo is quoted per kilogram."""

    is_air = "KG" in shipment.details.cargo.upper() or any(
        "AEREO" in _fold(charge.name) for charge in shipment.charges
    )
    direction = "IMPORTACAO" if shipment.is_import else "EXPORTACAO"
    return f"{direction}_{'AEREA' if is_air else 'MARITIMA'}"


def shipment_services(shipment: Shipment) -> List[str]:
    names = [_fold(charge.name) for charge in shipment.charges]
    return [
        service
        for service, markers in _SERVICE_MARKERS.items()
        if any(marker in name for marker in markers for name in names)
    ]


def rule_matches(rule: TaskAutomationRule, shipment: Shipment) -> bool:
    if rule.modal != "TODOS" and rule.modal != shipment_modal(shipment):
        return False
    if rule.client_conditions and shipment.customer not in rule.client_conditions:
        return False
    services = shipment_services(shipment)
    return all(condition in services for condition in rule.service_conditions)


def trigger_date(rule: TaskAutomationRule, shipment: Shipment) -> Optional[date]:
    anchor = shipment.etd if rule.milestone == "ETD" else shipment.eta
    if anchor is None:
        return None
    offset = timedelta(days=rule.days)
    anchor_date = anchor.date()
    return anchor_date - offset if rule.timing == "ANTES" else anchor_date + offset


def due_tasks(
    rules: Iterable[TaskAutomationRule],
    shipments: Iterable[Shipment],
    today: Optional[date] = None,
) -> List[DueTask]:
    """Rules whose trigger date is ``today`` for each matching shipment."""

    today = today or date.today()
    shipments = list(shipments)
    tasks: List[DueTask] = []
    for rule in rules:
        for shipment in shipments:
            if not rule_matches(rule, shipment):
                continue
            if trigger_date(rule, shipment) == today:
                tasks.append(DueTask(rule=rule, shipment=shipment, reference_date=today))
    return tasks


def initial_task_rules() -> List[Dict[str, Any]]:
    return [
        {
            "id": "rule-1",
            "modal": "IMPORTACAO_MARITIMA",
            "days": 3,
            "timing": "ANTES",
            "milestone": "ETA",
            "action": "ALERTA",
            "recipient": "OPERACIONAL",
            "content": (
                "Verificar com o cliente o status do numerário para desembaraço. "
                "Carga chegando em 3 dias."
            ),
            "serviceConditions": ["DESPACHO_ADUANEIRO"],
            "clientConditions": [],
        },
        {
            "id": "rule-2",
            "modal": "EXPORTACAO_MARITIMA",
            "days": 2,
            "timing": "ANTES",
            "milestone": "ETD",
            "action": "EMAIL",
            "recipient": "CLIENTE",
            "content": (
                "Prezado cliente, seu embarque está programado para partir em 2 dias. "
                "Por favor, certifique-se que toda a documentação foi enviada. Obrigado!"
            ),
            "serviceConditions": [],
            "clientConditions": [],
        },
        {
            "id": "rule-3",
            "modal": "TODOS",
            "days": 1,
            "timing": "DEPOIS",
            "milestone": "ETA",
            "action": "RELATORIO_STATUS",
            "recipient": "CLIENTE",
            "content": "Seu embarque chegou! Segue o status atualizado.",
            "serviceConditions": [],
            "clientConditions": ["Nexus Imports"],
        },
    ]


__all__ = [
    "DueTask",
    "MIN_CONTENT_LENGTH",
    "RULE_ACTIONS",
    "RULE_MILESTONES",
    "RULE_MODALS",
    "RULE_RECIPIENTS",
    "RULE_TIMINGS",
    "SERVICE_CONDITIONS",
    "TaskAutomationRule",
    "due_tasks",
    "initial_task_rules",
    "rule_matches",
    "shipment_modal",
    "shipment_services",
    "trigger_date",
]
