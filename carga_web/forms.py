"""Form parsing and validation helpers.

Each ``parse_*`` helper takes the decoded JSON body of a request and returns
``(result, errors)``. ``result`` is ``None`` when validation fails.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

from carga_common.dates import parse_date
from carga_common.fees import CURRENCIES, DIRECTIONS, FEE_TYPES, MODALS, Fee
from carga_common.financials import MAX_INSTALLMENTS, BankAccount
from carga_common.partners import COMMISSION_UNITS, CONTACT_DEPARTMENTS, Partner
from carga_common.simulation import ICMS_LIMIT_MESSAGE, SimulationInput
from carga_common.tasks import (
    MIN_CONTENT_LENGTH,
    RULE_ACTIONS,
    RULE_MILESTONES,
    RULE_MODALS,
    RULE_RECIPIENTS,
    RULE_TIMINGS,
    SERVICE_CONDITIONS,
    TaskAutomationRule,
)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _text(form: Mapping[str, Any], key: str) -> str:
    value = form.get(key)
    return str(value).strip() if value is not None else ""


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return Decimal(str(value).replace(",", "."))
    except InvalidOperation:
        return None


def parse_partner_form(
    form: Mapping[str, Any]
) -> Tuple[Optional[Partner], List[str]]:
    """Validate a partner registration."""

    errors: List[str] = []
    name = _text(form, "name")
    if len(name) < 2:
        errors.append("O nome do parceiro é obrigatório")

    contacts = form.get("contacts") or []
    if not contacts:
        errors.append("Adicione pelo menos um contato")
    for index, contact in enumerate(contacts, start=1):
        prefix = f"Contato {index}: "
        if not _text(contact, "name"):
            errors.append(prefix + "Nome do contato é obrigatório")
        if not EMAIL_PATTERN.match(_text(contact, "email")):
            errors.append(prefix + "E-mail inválido")
        if len(_text(contact, "phone")) < 10:
            errors.append(prefix + "Telefone inválido")
        departments = contact.get("departments") or []
        if not departments:
            errors.append(prefix + "Selecione pelo menos um departamento")
        elif any(d not in CONTACT_DEPARTMENTS for d in departments):
            errors.append(prefix + "Departamento inválido")
        login = _text(contact, "loginEmail")
        if login and not EMAIL_PATTERN.match(login):
            errors.append(prefix + "E-mail de login inválido")

    agreement = form.get("commissionAgreement") or {}
    if agreement:
        if agreement.get("unit") and agreement["unit"] not in COMMISSION_UNITS:
            errors.append("Unidade de comissão inválida")
        amount = agreement.get("amount")
        if amount not in (None, "") and (_decimal(amount) is None or _decimal(amount) < 0):
            errors.append("Valor da comissão inválido")

    if errors:
        return None, errors
    payload = dict(form)
    payload["name"] = name
    return Partner.from_dict(payload), []


def parse_fee_form(form: Mapping[str, Any]) -> Tuple[Optional[Fee], List[str]]:
    """Validate a standard fee."""

    errors: List[str] = []
    if not _text(form, "name"):
        errors.append("Nome é obrigatório")
    if not _text(form, "value"):
        errors.append("Valor é obrigatório")
    if not _text(form, "unit"):
        errors.append("Unidade é obrigatória")
    for key, allowed in (
        ("currency", CURRENCIES),
        ("type", FEE_TYPES),
        ("modal", MODALS),
        ("direction", DIRECTIONS),
    ):
        if _text(form, key) not in allowed:
            errors.append(f"Valor inválido para {key}: {form.get(key)!r}")
    minimum = form.get("minValue")
    if minimum not in (None, "") and _decimal(minimum) is None:
        errors.append("Valor mínimo inválido")

    if errors:
        return None, errors
    return Fee.from_dict(form), []


def parse_simulation_form(
    form: Mapping[str, Any]
) -> Tuple[Optional[SimulationInput], List[str]]:
    """Validate the DI cost simulator form."""

    errors: List[str] = []
    if len(_text(form, "simulationName")) < 3:
        errors.append("Nome é obrigatório")
    if not _text(form, "customerName"):
        errors.append("Selecione um cliente")

    for key in ("freightCostUSD", "insuranceCostUSD", "thcValueBRL", "otherExpensesBRL"):
        value = _decimal(form.get(key, 0))
        if value is None or value < 0:
            errors.append(f"{key}: Obrigatório")
    rate = _decimal(form.get("exchangeRate"))
    if rate is None or rate < Decimal("0.01"):
        errors.append("exchangeRate: Obrigatório")
    icms = _decimal(form.get("icmsRate", 17))
    if icms is None or icms < 0:
        errors.append("icmsRate: Obrigatório")
    elif icms >= 100:
        errors.append(ICMS_LIMIT_MESSAGE)

    items = form.get("itens") or []
    if not items:
        errors.append("Adicione pelo menos um item.")
    for index, item in enumerate(items, start=1):
        prefix = f"Item {index}: "
        if not _text(item, "descricao"):
            errors.append(prefix + "Obrigatório")
        if len(_text(item, "ncm")) != 8:
            errors.append(prefix + "NCM deve ter 8 dígitos")
        for key in ("quantidade", "valorUnitarioUSD", "pesoKg"):
            value = _decimal(item.get(key))
            if value is None or value < Decimal("0.01"):
                errors.append(prefix + f"{key} Obrigatório")

    if errors:
        return None, errors
    return SimulationInput.from_dict(form), []


def parse_task_rule_form(
    form: Mapping[str, Any]
) -> Tuple[Optional[TaskAutomationRule], List[str]]:
    """Validate a task automation rule."""

    errors: List[str] = []
    for key, allowed in (
        ("modal", RULE_MODALS),
        ("timing", RULE_TIMINGS),
        ("milestone", RULE_MILESTONES),
        ("action", RULE_ACTIONS),
        ("recipient", RULE_RECIPIENTS),
    ):
        if _text(form, key) not in allowed:
            errors.append(f"Valor inválido para {key}: {form.get(key)!r}")
    try:
        days = int(form.get("days", ""))
    except (TypeError, ValueError):
        days = -1
    if days < 0:
        errors.append("O número de dias deve ser positivo.")
    if len(_text(form, "content")) < MIN_CONTENT_LENGTH:
        errors.append("O conteúdo deve ter pelo menos 10 caracteres.")
    unknown = [c for c in form.get("serviceConditions") or [] if c not in SERVICE_CONDITIONS]
    if unknown:
        errors.append(f"Condições de serviço inválidas: {', '.join(unknown)}")

    if errors:
        return None, errors
    return TaskAutomationRule.from_dict(form), []


def parse_bank_account_form(
    form: Mapping[str, Any]
) -> Tuple[Optional[BankAccount], List[str]]:
    errors: List[str] = []
    for key, message in (
        ("name", "Nome da conta é obrigatório"),
        ("bankName", "Nome do banco é obrigatório"),
        ("agency", "Agência é obrigatória"),
        ("accountNumber", "Número da conta é obrigatório"),
    ):
        if not _text(form, key):
            errors.append(message)
    if _text(form, "currency") not in CURRENCIES:
        errors.append(f"Moeda inválida: {form.get('currency')!r}")
    if _decimal(form.get("balance", 0)) is None:
        errors.append("Saldo inválido")

    if errors:
        return None, errors
    payload = dict(form)
    payload.setdefault("id", 0)
    return BankAccount.from_dict(payload), []


def parse_financial_entry_form(
    form: Mapping[str, Any]
) -> Tuple[Optional[Dict[str, Any]], List[str]]:
    """Validate a manually launched entry; returns its stored payload."""

    errors: List[str] = []
    if form.get("type") not in ("credit", "debit"):
        errors.append("Tipo deve ser credit ou debit.")
    if not _text(form, "partner"):
        errors.append("Selecione um parceiro.")
    if not _text(form, "description"):
        errors.append("Descrição é obrigatória.")
    amount = _decimal(form.get("amount"))
    if amount is None or amount < Decimal("0.01"):
        errors.append("O valor deve ser maior que zero.")
    if _text(form, "currency") not in CURRENCIES:
        errors.append(f"Moeda inválida: {form.get('currency')!r}")
    due = parse_date(form.get("dueDate"))
    if due is None:
        errors.append("Data de vencimento é obrigatória.")

    if errors:
        return None, errors
    payload = {
        "type": form["type"],
        "partner": _text(form, "partner"),
        "description": _text(form, "description"),
        "invoiceId": _text(form, "invoiceId") or f"MAN-{due:%Y%m%d}",
        "dueDate": f"{due.isoformat()}T00:00:00",
        "amount": float(amount),
        "currency": _text(form, "currency"),
        "processId": _text(form, "processId") or "N/A",
        "status": "Aberto",
        "expenseType": _text(form, "expenseType") or "Operacional",
    }
    if form.get("accountId") not in (None, ""):
        payload["accountId"] = int(form["accountId"])
    return payload, []


@dataclass(slots=True)
class SettlementFormData:
    account_id: int
    amount: Decimal
    exchange_rate: Optional[Decimal]


def parse_settlement_form(
    form: Mapping[str, Any]
) -> Tuple[Optional[SettlementFormData], List[str]]:
    try:
        account_id = int(form.get("accountId", ""))
    except (TypeError, ValueError):
        return None, ["Todos os campos são obrigatórios."]
    amount = _decimal(form.get("amount"))
    if amount is None:
        return None, ["Todos os campos são obrigatórios."]
    return (
        SettlementFormData(
            account_id=account_id,
            amount=amount,
            exchange_rate=_decimal(form.get("exchangeRate")),
        ),
        [],
    )


@dataclass(slots=True)
class RenegotiationFormData:
    installments: int
    start_date: date
    total: Optional[Decimal]


def parse_renegotiation_form(
    form: Mapping[str, Any]
) -> Tuple[Optional[RenegotiationFormData], List[str]]:
    errors: List[str] = []
    try:
        installments = int(form.get("installments", ""))
    except (TypeError, ValueError):
        installments = 0
    if installments < 1:
        errors.append("Mínimo de 1 parcela.")
    elif installments > MAX_INSTALLMENTS:
        errors.append("Máximo de 48 parcelas.")
    start = parse_date(form.get("firstDueDate"))
    if start is None:
        errors.append("Data de início é obrigatória.")

    if errors:
        return None, errors
    return (
        RenegotiationFormData(
            installments=installments,
            start_date=start,
            total=_decimal(form.get("totalAmount")),
        ),
        [],
    )


@dataclass(slots=True)
class LegalReferralFormData:
    lawyer_id: int
    comments: str


def parse_legal_referral_form(
    form: Mapping[str, Any]
) -> Tuple[Optional[LegalReferralFormData], List[str]]:
    errors: List[str] = []
    try:
        lawyer_id = int(form.get("lawyerId", ""))
    except (TypeError, ValueError):
        lawyer_id = 0
        errors.append("Selecione um advogado.")
    comments = _text(form, "comments")
    if len(comments) < 10:
        errors.append("Adicione um comentário com pelo menos 10 caracteres.")

    if errors:
        return None, errors
    return LegalReferralFormData(lawyer_id=lawyer_id, comments=comments), []


INCOTERMS = ("EXW", "FCA", "FAS", "FOB", "CFR", "CIF", "CPT", "CIP", "DAP", "DPU", "DDP", "DDU")
DELIVERY_INCOTERMS = ("DAP", "DPU", "DDP", "DDU")


def _positive(value: Any, minimum: Decimal) -> bool:
    number = _decimal(value)
    return number is not None and number >= minimum


def parse_freight_quote_form(
    form: Mapping[str, Any]
) -> Tuple[Optional[Dict[str, Any]], List[str]]:
    """Validate the freight quote request used by rate search and agent quotes.

    Returns the form as a plain dict with stripped locations; nested pieces,
    containers and LCL details are checked only for the selected modal.
    """

    errors: List[str] = []
    if not _text(form, "customerId"):
        errors.append("Por favor, selecione um cliente.")
    modal = _text(form, "modal")
    if modal not in ("air", "ocean"):
        errors.append("Modal inválido.")
    incoterm = _text(form, "incoterm")
    if incoterm not in INCOTERMS:
        errors.append("Incoterm inválido.")
    if len(_text(form, "origin")) < 3:
        errors.append("Origem obrigatória (mínimo 3 caracteres).")
    if len(_text(form, "destination")) < 3:
        errors.append("Destino obrigatório (mínimo 3 caracteres).")
    if incoterm == "EXW" and len(_text(form, "collectionAddress")) < 5:
        errors.append("O local de coleta é obrigatório para o incoterm EXW (mínimo 5 caracteres).")

    if modal == "air":
        pieces = (form.get("airShipment") or {}).get("pieces") or []
        if not pieces:
            errors.append("Adicione pelo menos uma peça para cotação aérea.")
        for index, piece in enumerate(pieces, start=1):
            dims_ok = all(
                _positive(piece.get(key), Decimal("1"))
                for key in ("quantity", "length", "width", "height")
            )
            if not dims_ok or not _positive(piece.get("weight"), Decimal("0.1")):
                errors.append(f"Peça {index}: dimensões e peso são obrigatórios.")
    elif modal == "ocean":
        shipment_type = _text(form, "oceanShipmentType") or "FCL"
        if shipment_type not in ("FCL", "LCL"):
            errors.append("Tipo de embarque marítimo inválido.")
        elif shipment_type == "FCL":
            containers = (form.get("oceanShipment") or {}).get("containers") or []
            if not containers:
                errors.append("Adicione pelo menos um contêiner para cotação FCL.")
            for index, container in enumerate(containers, start=1):
                kind = _text(container, "type")
                if not kind:
                    errors.append(f"Contêiner {index}: selecione o tipo")
                if not _positive(container.get("quantity"), Decimal("1")):
                    errors.append(f"Contêiner {index}: quantidade obrigatória")
                if ("OT" in kind or "FR" in kind) and not all(
                    _positive(container.get(key), Decimal("0.01"))
                    for key in ("length", "width", "height", "weight")
                ):
                    errors.append(f"Contêiner {index}: dimensões e peso obrigatórios para carga especial")
        else:
            lcl = form.get("lclDetails") or {}
            if not _positive(lcl.get("cbm"), Decimal("0.01")):
                errors.append("CBM deve ser maior que 0.")
            if not _positive(lcl.get("weight"), Decimal("1")):
                errors.append("Peso deve ser maior que 0.")

    services = form.get("optionalServices") or {}
    if (services.get("delivery") or incoterm in DELIVERY_INCOTERMS) and len(
        _text(form, "deliveryAddress")
    ) < 5:
        errors.append("O local de entrega é obrigatório para este Incoterm ou serviço selecionado.")

    if errors:
        return None, errors
    payload = dict(form)
    payload["origin"] = _text(form, "origin")
    payload["destination"] = _text(form, "destination")
    return payload, []


__all__ = [
    "INCOTERMS",
    "LegalReferralFormData",
    "RenegotiationFormData",
    "SettlementFormData",
    "parse_bank_account_form",
    "parse_fee_form",
    "parse_financial_entry_form",
    "parse_freight_quote_form",
    "parse_legal_referral_form",
    "parse_partner_form",
    "parse_renegotiation_form",
    "parse_settlement_form",
    "parse_simulation_form",
    "parse_task_rule_form",
]
