"""Standard fee table, default profit margins and the employee registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from werkzeug.security import generate_password_hash

CURRENCIES = ("BRL", "USD", "EUR", "JPY", "CHF", "GBP")
FEE_TYPES = ("Fixo", "Percentual", "Por CBM/Ton", "Opcional", "Por KG")
MODALS = ("Marítimo", "Aéreo", "Ambos")
DIRECTIONS = ("Importação", "Exportação", "Ambos")
CHARGE_TYPES = ("FCL", "LCL", "Aéreo", "NONE")
WORK_REGIMES = ("CLT", "PJ")
EMPLOYEE_STATUSES = ("Ativo", "Inativo")


@dataclass(slots=True)
class Fee:
    """Local charge applied to quotes, filtered by modal and direction."""

    id: Optional[int]
    name: str
    value: str
    currency: str
    type: str
    unit: str
    modal: str
    direction: str
    charge_type: Optional[str] = None
    min_value: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Fee":
        minimum = payload.get("minValue")
        return cls(
            id=int(payload["id"]) if payload.get("id") is not None else None,
            name=str(payload.get("name", "")),
            value=str(payload.get("value", "")),
            currency=str(payload.get("currency", "BRL")),
            type=str(payload.get("type", "Fixo")),
            unit=str(payload.get("unit", "")),
            modal=str(payload.get("modal", "Ambos")),
            direction=str(payload.get("direction", "Ambos")),
            charge_type=payload.get("chargeType"),
            min_value=Decimal(str(minimum)) if minimum not in (None, "") else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "value": self.value,
            "currency": self.currency,
            "type": self.type,
            "unit": self.unit,
            "modal": self.modal,
            "direction": self.direction,
        }
        if self.charge_type:
            payload["chargeType"] = self.charge_type
        if self.min_value is not None:
            payload["minValue"] = float(self.min_value)
        return payload

    def applies_to(self, modal: str, direction: str, charge_type: Optional[str] = None) -> bool:
        if self.modal not in (modal, "Ambos") or self.direction not in (direction, "Ambos"):
            return False
        if charge_type and self.charge_type and self.charge_type != charge_type:
            return False
        return True


def fees_for(
    fees: Iterable[Fee], modal: str, direction: str, charge_type: Optional[str] = None
) -> List[Fee]:
    """Fees matching a quote's modal, direction and (optionally) load type."""

    return [fee for fee in fees if fee.applies_to(modal, direction, charge_type)]


def next_fee_id(fees: Iterable[Fee]) -> int:
    return max((f.id for f in fees if f.id is not None), default=0) + 1


_FEE_ROWS = (
    # id, name, value, currency, type, unit, modal, direction, chargeType, minValue
    (1, "THC", "1350", "BRL", "Fixo", "Por Contêiner", "Marítimo", "Importação", "FCL", None),
    (2, "BL FEE", "600", "BRL", "Fixo", "Por BL", "Marítimo", "Importação", "FCL", None),
    (3, "ISPS", "35", "USD", "Fixo", "Por Contêiner", "Marítimo", "Importação", "FCL", None),
    (4, "DESCONSOLIDAÇÃO", "150", "BRL", "Fixo", "Por BL", "Marítimo", "Importação", "FCL", None),
    (20, "IMPORT FEE (DEV CTNR)", "35", "USD", "Fixo", "Por Contêiner", "Marítimo", "Importação", "FCL", None),
    (21, "LOGISTIC FEE", "55", "USD", "Fixo", "Por Contêiner", "Marítimo", "Importação", "FCL", None),
    (22, "TRS", "10", "USD", "Fixo", "Por Contêiner", "Marítimo", "Importação", "FCL", None),
    (5, "THC", "50", "BRL", "Por CBM/Ton", "W/M", "Marítimo", "Importação", "LCL", 50),
    (6, "DESOVA", "50", "BRL", "Por CBM/Ton", "W/M", "Marítimo", "Importação", "LCL", 50),
    (7, "BL FEE", "200", "BRL", "Fixo", "Por BL", "Marítimo", "Importação", "LCL", None),
    (23, "DESCONSOLIDAÇÃO", "100", "USD", "Fixo", "Por BL", "Marítimo", "Importação", "LCL", None),
    (24, "TRS", "10", "USD", "Fixo", "Por BL", "Marítimo", "Importação", "LCL", None),
    (25, "ISPS", "10", "USD", "Fixo", "Por BL", "Marítimo", "Importação", "LCL", None),
    (8, "THC", "1350", "BRL", "Fixo", "Por Contêiner", "Marítimo", "Exportação", "FCL", None),
    (9, "BL FEE", "600", "BRL", "Fixo", "Por BL", "Marítimo", "Exportação", "FCL", None),
    (10, "LACRE", "20", "USD", "Fixo", "Por Contêiner", "Marítimo", "Exportação", "FCL", None),
    (11, "VGM", "20", "USD", "Fixo", "Por BL", "Marítimo", "Exportação", "FCL", None),
    (26, "ISPS", "35", "USD", "Fixo", "Por Contêiner", "Marítimo", "Exportação", "FCL", None),
    (12, "DESCONSOLIDAÇÃO", "80", "USD", "Fixo", "Por AWB", "Aéreo", "Importação", None, None),
    (13, "COLLECT FEE", "3", "USD", "Percentual", "Sobre o Frete", "Aéreo", "Importação", None, 15),
    (27, "DELIVERY", "45", "USD", "Fixo", "Por AWB", "Aéreo", "Importação", None, None),
    (28, "AWB FEE", "50", "USD", "Fixo", "Por AWB", "Aéreo", "Exportação", None, None),
    (29, "HANDLING FEE", "50", "USD", "Fixo", "Por AWB", "Aéreo", "Exportação", None, None),
    (30, "FRETE AÉREO", "0.07", "USD", "Por KG", "/KG", "Aéreo", "Exportação", None, 150),
    (31, "CUSTOMS CLEARANCE", "50", "USD", "Fixo", "Por AWB", "Aéreo", "Exportação", None, None),
    (14, "DESPACHO ADUANEIRO", "1000", "BRL", "Opcional", "Por Processo", "Ambos", "Ambos", None, None),
    (15, "SEGURO INTERNACIONAL", "0.3", "BRL", "Opcional", "Sobre Valor Carga", "Ambos", "Ambos", None, 50),
    (32, "REDESTINAÇÃO DE CARGA", "1200", "BRL", "Opcional", "Por Processo", "Marítimo", "Importação", None, None),
)


def initial_fees() -> List[Dict[str, Any]]:
    fees = []
    for fee_id, name, value, currency, kind, unit, modal, direction, charge, minimum in _FEE_ROWS:
        fees.append(
            Fee(
                id=fee_id,
                name=name,
                value=value,
                currency=currency,
                type=kind,
                unit=unit,
                modal=modal,
                direction=direction,
                charge_type=charge,
                min_value=Decimal(str(minimum)) if minimum is not None else None,
            ).to_dict()
        )
    return fees


@dataclass(slots=True)
class ProfitSetting:
    """Default margin added over cost when no agreement exists."""

    id: str
    modal: str
    unit: str
    amount: Decimal
    currency: str = "USD"

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProfitSetting":
        return cls(
            id=str(payload["id"]),
            modal=str(payload.get("modal", "")),
            unit=str(payload.get("unit", "")),
            amount=Decimal(str(payload.get("amount") or 0)),
            currency=str(payload.get("currency", "USD")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "modal": self.modal,
            "unit": self.unit,
            "amount": float(self.amount),
            "currency": self.currency,
        }


def initial_profit_settings() -> List[Dict[str, Any]]:
    return [
        {"id": "maritimo", "modal": "Marítimo", "unit": "Por Contêiner", "amount": 50, "currency": "USD"},
        {"id": "aereo", "modal": "Aéreo", "unit": "Por KG", "amount": 0.5, "currency": "USD"},
    ]


@dataclass(slots=True)
class Employee:
    id: int
    name: str
    role: str
    work_regime: str
    salary: Decimal
    status: str
    admission_date: str
    system_access: Dict[str, Any]
    vacation_days: int = 30
    benefits: Dict[str, Any] = field(default_factory=dict)
    awards: Dict[str, Any] = field(default_factory=dict)
    extras: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Employee":
        known = {
            "id", "name", "role", "workRegime", "salary", "status", "admissionDate",
            "systemAccess", "vacationDays", "benefits", "awards",
        }
        return cls(
            id=int(payload["id"]),
            name=str(payload.get("name", "")),
            role=str(payload.get("role", "")),
            work_regime=str(payload.get("workRegime", "CLT")),
            salary=Decimal(str(payload.get("salary") or 0)),
            status=str(payload.get("status", "Ativo")),
            admission_date=str(payload.get("admissionDate", "")),
            system_access=dict(payload.get("systemAccess") or {}),
            vacation_days=int(payload.get("vacationDays", 30)),
            benefits=dict(payload.get("benefits") or {}),
            awards=dict(payload.get("awards") or {}),
            extras={k: v for k, v in payload.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.extras)
        payload.update(
            {
                "id": self.id,
                "name": self.name,
                "role": self.role,
                "workRegime": self.work_regime,
                "salary": float(self.salary),
                "status": self.status,
                "admissionDate": self.admission_date,
                "systemAccess": dict(self.system_access),
                "vacationDays": self.vacation_days,
                "benefits": dict(self.benefits),
                "awards": dict(self.awards),
            }
        )
        return payload


def hash_employee_password(employee: Dict[str, Any]) -> Dict[str, Any]:
    """Replace a plain ``systemAccess.password`` with a werkzeug hash."""

    access = dict(employee.get("systemAccess") or {})
    password = access.pop("password", None)
    if password:
        access["passwordHash"] = generate_password_hash(password)
    employee["systemAccess"] = access
    return employee


def initial_employees() -> List[Dict[str, Any]]:
    admin = {
        "id": 1,
        "name": "Admin Geral",
        "role": "Administrador",
        "workRegime": "CLT",
        "salary": 15000,
        "status": "Ativo",
        "vacationDays": 25,
        "benefits": {"hasHealthPlan": True, "hasMealVoucher": True, "mealVoucherValue": 1200},
        "birthDate": "1985-10-20T00:00:00",
        "phone": "(11) 99999-9999",
        "address": "Rua Principal, 123, São Paulo, SP",
        "admissionDate": "2020-01-15T00:00:00",
        "systemAccess": {"email": "admin@cargainteligente.com", "password": "senha_super_segura"},
        "awards": {"balance": 500, "cajuCardNumber": "1234-5678-9012-3456"},
    }
    return [hash_employee_password(admin)]


__all__ = [
    "CHARGE_TYPES",
    "CURRENCIES",
    "DIRECTIONS",
    "EMPLOYEE_STATUSES",
    "Employee",
    "FEE_TYPES",
    "Fee",
    "MODALS",
    "ProfitSetting",
    "WORK_REGIMES",
    "fees_for",
    "hash_employee_password",
    "initial_employees",
    "initial_fees",
    "initial_profit_settings",
    "next_fee_id",
]
