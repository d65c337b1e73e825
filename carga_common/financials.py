"""Accounts receivable/payable ledger for CargaInteligente.

Entries are credits (invoices to clients) or debits (bills from suppliers
and administrative expenses). Partial payments are recorded against an entry
and the entry status is derived from its balance and due date.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .dates import add_months, isoformat, parse_date, parse_datetime

ENTRY_TYPES = ("credit", "debit")
ENTRY_STATUSES = (
    "Aberto",
    "Pago",
    "Vencido",
    "Parcialmente Pago",
    "Jurídico",
    "Pendente de Aprovação",
    "Renegociado",
)
LEGAL_STATUSES = (
    "Extrajudicial",
    "Fase Inicial",
    "Fase de Execução",
    "Desconsideração da Personalidade Jurídica",
)
EXPENSE_TYPES = ("Operacional", "Administrativa")
RECURRENCES = ("Única", "Mensal", "Anual")
MAX_INSTALLMENTS = 48


class FinancialValidationError(ValueError):
    """Raised when a settlement or renegotiation request is invalid."""


def _money(value: Any) -> Decimal:
    return Decimal(str(value if value is not None else 0))


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True)
class BankAccount:
    id: int
    name: str
    bank_name: str
    agency: str
    account_number: str
    currency: str
    balance: Decimal

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "BankAccount":
        return cls(
            id=int(payload["id"]),
            name=str(payload.get("name", "")),
            bank_name=str(payload.get("bankName", "")),
            agency=str(payload.get("agency", "")),
            account_number=str(payload.get("accountNumber", "")),
            currency=str(payload.get("currency", "BRL")),
            balance=_money(payload.get("balance")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "bankName": self.bank_name,
            "agency": self.agency,
            "accountNumber": self.account_number,
            "currency": self.currency,
            "balance": float(self.balance),
        }


@dataclass(slots=True)
class Payment:
    """Partial payment registered against a financial entry."""

    id: str
    amount: Decimal
    date: str
    account_id: int
    exchange_rate: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Payment":
        rate = payload.get("exchangeRate")
        return cls(
            id=str(payload["id"]),
            amount=_money(payload.get("amount")),
            date=str(payload.get("date", "")),
            account_id=int(payload.get("accountId", 0)),
            exchange_rate=_money(rate) if rate is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "amount": float(self.amount),
            "date": self.date,
            "accountId": self.account_id,
        }
        if self.exchange_rate is not None:
            payload["exchangeRate"] = float(self.exchange_rate)
        return payload


_OPTIONAL_ENTRY_KEYS = (
    ("legalStatus", "legal_status"),
    ("legalComments", "legal_comments"),
    ("processoJudicial", "processo_judicial"),
    ("expenseType", "expense_type"),
    ("recurrence", "recurrence"),
    ("description", "description"),
    ("originalEntryId", "original_entry_id"),
    ("accountId", "account_id"),
)


@dataclass(slots=True)
class FinancialEntry:
    """Invoice (credit) or bill (debit) with its payment history."""

    id: str
    type: str
    partner: str
    invoice_id: str
    due_date: str
    amount: Decimal
    currency: str
    process_id: str
    status: str = "Aberto"
    payments: List[Payment] = field(default_factory=list)
    legal_status: Optional[str] = None
    legal_comments: Optional[str] = None
    processo_judicial: Optional[str] = None
    expense_type: Optional[str] = None
    recurrence: Optional[str] = None
    description: Optional[str] = None
    original_entry_id: Optional[str] = None
    account_id: Optional[int] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FinancialEntry":
        entry = cls(
            id=str(payload.get("id", "")),
            type=str(payload.get("type", "credit")),
            partner=str(payload.get("partner", "")),
            invoice_id=str(payload.get("invoiceId", "")),
            due_date=str(payload.get("dueDate", "")),
            amount=_money(payload.get("amount")),
            currency=str(payload.get("currency", "BRL")),
            process_id=str(payload.get("processId", "")),
            status=str(payload.get("status", "Aberto")),
            payments=[Payment.from_dict(p) for p in payload.get("payments") or []],
        )
        for key, attribute in _OPTIONAL_ENTRY_KEYS:
            if payload.get(key) is not None:
                setattr(entry, attribute, payload[key])
        return entry

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "partner": self.partner,
            "invoiceId": self.invoice_id,
            "dueDate": self.due_date,
            "amount": float(self.amount),
            "currency": self.currency,
            "processId": self.process_id,
            "status": self.status,
        }
        if self.payments:
            payload["payments"] = [p.to_dict() for p in self.payments]
        for key, attribute in _OPTIONAL_ENTRY_KEYS:
            value = getattr(self, attribute)
            if value is not None:
                payload[key] = value
        return payload


def balance(entry: FinancialEntry) -> Decimal:
    """Outstanding amount: entry amount minus all payments."""

    return entry.amount - sum((p.amount for p in entry.payments), Decimal())


def resolve_status(entry: FinancialEntry, today: Optional[date] = None) -> str:
    """Derive the display status of ``entry``.

    Legal referrals keep their status. Otherwise a settled balance wins over
    an overdue date, which wins over a partial payment. An entry due today is
    not overdue yet.
    """

    if entry.status == "Jurídico":
        return "Jurídico"
    today = today or date.today()
    outstanding = balance(entry)
    if outstanding <= 0:
        return "Pago"
    due = parse_date(entry.due_date)
    if due is not None and due < today:
        return "Vencido"
    if entry.amount - outstanding > 0:
        return "Parcialmente Pago"
    return "Aberto"


def settle_entry(
    entry: FinancialEntry,
    account: Optional[BankAccount],
    amount: Any,
    *,
    when: Optional[datetime] = None,
    exchange_rate: Any = None,
) -> Payment:
    """Register a payment on ``entry`` through ``account``.

    Args:
        entry: Entry being settled; its payments list and status are updated.
        account: Bank account receiving (credit) or paying (debit) the money.
        amount: Payment amount in the entry currency.
        when: Payment timestamp, defaults to now.
        exchange_rate: Required when the account currency differs from the
            entry currency; the account balance moves by ``amount`` times the
            rate.

    Returns:
        Payment: The payment that was appended.

    Raises:
        FinancialValidationError: Missing fields, missing exchange rate or an
            amount above the outstanding balance.
    """

    if account is None or amount in (None, ""):
        raise FinancialValidationError("Todos os campos são obrigatórios.")
    value = _money(amount)
    if value <= 0:
        raise FinancialValidationError("Todos os campos são obrigatórios.")
    needs_rate = account.currency != entry.currency
    if needs_rate and exchange_rate in (None, ""):
        raise FinancialValidationError("Taxa de câmbio é obrigatória.")
    if value > balance(entry):
        raise FinancialValidationError(
            "O valor do pagamento não pode ser maior que o saldo devedor."
        )

    when = when or datetime.now()
    rate = _money(exchange_rate) if needs_rate else None
    payment = Payment(
        id=f"pay-{int(when.timestamp() * 1000)}",
        amount=value,
        date=isoformat(when),
        account_id=account.id,
        exchange_rate=rate,
    )
    entry.payments.append(payment)
    converted = value * rate if rate is not None else value
    if entry.type == "credit":
        account.balance += converted
    else:
        account.balance -= converted
    if entry.status not in ("Jurídico", "Pendente de Aprovação"):
        entry.status = resolve_status(entry, when.date())
    return payment


def renegotiate(
    entry: FinancialEntry,
    installments: int,
    start_date: date,
    total: Any = None,
) -> List[Dict[str, Any]]:
    """Split ``entry`` into monthly installments.

    Returns the new entries without ids; the caller stores them with
    :meth:`add_entries`. The original entry is marked ``Renegociado``.
    """

    if installments < 1:
        raise FinancialValidationError("Mínimo de 1 parcela.")
    if installments > MAX_INSTALLMENTS:
        raise FinancialValidationError("Máximo de 48 parcelas.")
    if start_date is None:
        raise FinancialValidationError("Data de início é obrigatória.")

    amount = _money(total) if total else entry.amount
    share = amount / installments
    start = parse_datetime(start_date)
    new_entries = []
    for index in range(installments):
        number = index + 1
        new_entries.append(
            FinancialEntry(
                id="",
                type="credit",
                partner=entry.partner,
                invoice_id=f"{entry.invoice_id}-P{number}/{installments}",
                due_date=isoformat(add_months(start, index)),
                amount=share,
                currency=entry.currency,
                process_id=entry.process_id,
                status="Aberto",
                expense_type="Operacional",
                original_entry_id=entry.id,
                description=(
                    f"Parcela {number}/{installments} da renegociação da fatura "
                    f"{entry.invoice_id}"
                ),
            ).to_dict()
        )
    entry.status = "Renegociado"
    return new_entries


def unified_settlement_totals(entries: Iterable[FinancialEntry]) -> Dict[str, Decimal]:
    """Net outstanding balance per currency; debits count negative."""

    totals: Dict[str, Decimal] = {}
    for entry in entries:
        outstanding = balance(entry)
        signed = outstanding if entry.type == "credit" else -outstanding
        totals[entry.currency] = totals.get(entry.currency, Decimal()) + signed
    return totals


def send_to_legal(
    entry: FinancialEntry, legal_status: str, comments: str = "", processo: Optional[str] = None
) -> FinancialEntry:
    if legal_status not in LEGAL_STATUSES:
        raise FinancialValidationError(f"Status jurídico inválido: {legal_status}")
    entry.status = "Jurídico"
    entry.legal_status = legal_status
    entry.legal_comments = comments
    if processo:
        entry.processo_judicial = processo
    return entry


def new_entry_id(spread: int = 1000, rng: Optional[random.Random] = None) -> str:
    """``fin-{epoch ms}-{random below spread}``."""

    rng = rng or random.Random()
    return f"fin-{_now_ms()}-{rng.randrange(spread)}"


def find_account(
    accounts: Iterable[BankAccount], *, account_id: Optional[int] = None, currency: Optional[str] = None
) -> Optional[BankAccount]:
    for account in accounts:
        if account_id is not None and account.id == account_id:
            return account
        if account_id is None and currency is not None and account.currency == currency:
            return account
    return None


def initial_bank_accounts() -> List[Dict[str, Any]]:
    return [
        {
            "id": 1,
            "name": "Conta Corrente BRL",
            "bankName": "Banco do Brasil",
            "agency": "1234-5",
            "accountNumber": "123.456-7",
            "currency": "BRL",
            "balance": 250320.75,
        },
        {
            "id": 2,
            "name": "Conta Internacional USD",
            "bankName": "Bank of America",
            "agency": "9876",
            "accountNumber": "987654321",
            "currency": "USD",
            "balance": 75250.00,
        },
    ]


def initial_financial_entries(today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Seed ledger with due dates relative to ``today``."""

    today = today or date.today()

    def due(days: int) -> str:
        return isoformat(parse_datetime(today + timedelta(days=days)))

    def pay(pid: str, amount: float, days: int, account: int) -> Dict[str, Any]:
        return {"id": pid, "amount": amount, "date": due(days), "accountId": account}

    def entry(eid, kind, partner, invoice, status, days, amount, currency, process, **extra):
        payload = {
            "id": eid,
            "type": kind,
            "partner": partner,
            "invoiceId": invoice,
            "status": status,
            "dueDate": due(days),
            "amount": amount,
            "currency": currency,
            "processId": process,
            "expenseType": "Operacional",
        }
        payload.update(extra)
        return payload

    return [
        entry("fin-001", "credit", "Nexus Imports", "INV-PROC-00125-95015", "Aberto", 15,
              12500.50, "BRL", "PROC-00125-95015"),
        entry("fin-002", "credit", "TechFront Solutions", "INV-PROC-00124-42898", "Pago", -20,
              8750, "BRL", "PROC-00124-42898", payments=[pay("pay-001", 8750, -20, 1)]),
        entry("fin-003", "credit", "Global Foods Ltda", "INV-PROC-00123-51881", "Vencido", -5,
              45800, "BRL", "PROC-00123-51881"),
        entry("fin-004", "credit", "Nexus Imports", "INV-PROC-00122-38416", "Parcialmente Pago",
              30, 3200, "USD", "PROC-00122-38416", payments=[pay("pay-002", 1200, -2, 2)]),
        entry("fin-008", "credit", "AutoParts Express", "INV-PROC-00121-72921", "Aberto", 0,
              7250.75, "BRL", "PROC-00121-72921"),
        entry("fin-010", "credit", "Empresa Dívida Ativa", "INV-2023-001", "Jurídico", -180,
              99500, "BRL", "PROC-JURIDICO-1", legalStatus="Fase Inicial",
              legalComments="Enviado para o advogado em 15/01. Aguardando notificação.",
              processoJudicial="123456-78.2024.8.26.0001"),
        entry("fin-011", "debit", "Locadora de Imóveis Central", "ALUGUEL-SEDE",
              "Pendente de Aprovação", 5, 8500, "BRL", "ADM-001", expenseType="Administrativa",
              recurrence="Mensal", description="Aluguel do escritório de Itajaí."),
        entry("fin-012", "debit", "Software House Inc.", "SOFT-SYS-2024",
              "Pendente de Aprovação", 10, 12000, "BRL", "ADM-002", expenseType="Administrativa",
              recurrence="Anual", description="Licença anual do sistema de gestão."),
        entry("fin-005", "debit", "Maersk Line", "BILL-PROC-00125-95015-MAE", "Aberto", 10,
              2800, "USD", "PROC-00125-95015"),
        entry("fin-006", "debit", "American Airlines Cargo", "BILL-PROC-00124-42898-AME", "Pago",
              -15, 2100, "USD", "PROC-00124-42898", payments=[pay("pay-003", 2100, -15, 2)]),
        entry("fin-007", "debit", "CMA CGM", "BILL-PROC-00123-51881-CMA", "Aberto", 5,
              3800, "USD", "PROC-00123-51881"),
        entry("fin-009", "debit", "LATAM Cargo", "BILL-PROC-00121-72921-LAT", "Aberto", 0,
              450, "USD", "PROC-00121-72921"),
    ]


__all__ = [
    "BankAccount",
    "ENTRY_STATUSES",
    "ENTRY_TYPES",
    "EXPENSE_TYPES",
    "FinancialEntry",
    "FinancialValidationError",
    "LEGAL_STATUSES",
    "MAX_INSTALLMENTS",
    "Payment",
    "RECURRENCES",
    "balance",
    "find_account",
    "initial_bank_accounts",
    "initial_financial_entries",
    "new_entry_id",
    "renegotiate",
    "resolve_status",
    "send_to_legal",
    "settle_entry",
    "unified_settlement_totals",
]
