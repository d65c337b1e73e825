"""Tests for the receivables and payables ledger."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from carga_common.dates import add_months, parse_br_date, parse_datetime
from carga_common.financials import (
    BankAccount,
    FinancialEntry,
    FinancialValidationError,
    balance,
    find_account,
    initial_bank_accounts,
    initial_financial_entries,
    renegotiate,
    resolve_status,
    send_to_legal,
    settle_entry,
    unified_settlement_totals,
)


def _entry(**overrides) -> FinancialEntry:
    payload = {
        "id": "fin-100",
        "type": "credit",
        "partner": "Nexus Imports",
        "invoiceId": "INV-100",
        "dueDate": "2024-06-30T00:00:00",
        "amount": 1000,
        "currency": "BRL",
        "processId": "PROC-100",
        "status": "Aberto",
    }
    payload.update(overrides)
    return FinancialEntry.from_dict(payload)


def _accounts():
    return [BankAccount.from_dict(a) for a in initial_bank_accounts()]


def test_resolve_status_priority():
    """Settled beats overdue, which beats partially paid."""

    today = date(2024, 6, 15)
    assert resolve_status(_entry(), today) == "Aberto"
    assert resolve_status(_entry(dueDate="2024-06-15T00:00:00"), today) == "Aberto"
    assert resolve_status(_entry(dueDate="2024-06-01T00:00:00"), today) == "Vencido"

    partial = _entry(payments=[{"id": "p1", "amount": 200, "date": "", "accountId": 1}])
    assert resolve_status(partial, today) == "Parcialmente Pago"

    paid_late = _entry(
        dueDate="2024-06-01T00:00:00",
        payments=[{"id": "p1", "amount": 1000, "date": "", "accountId": 1}],
    )
    assert resolve_status(paid_late, today) == "Pago"
    assert resolve_status(_entry(status="Jurídico", dueDate="2020-01-01"), today) == "Jurídico"


def test_settle_credit_in_same_currency():
    entry = _entry()
    account = find_account(_accounts(), account_id=1)

    payment = settle_entry(entry, account, "400", when=datetime(2024, 6, 10, 12, 0))

    assert payment.id == f"pay-{int(datetime(2024, 6, 10, 12, 0).timestamp() * 1000)}"
    assert payment.exchange_rate is None
    assert balance(entry) == Decimal("600")
    assert entry.status == "Parcialmente Pago"
    assert account.balance == Decimal("250320.75") + Decimal("400")


def test_settle_debit_with_exchange_rate():
    """A USD bill paid from the BRL account moves the balance by amount x rate."""

    entry = _entry(type="debit", currency="USD", amount=100)
    account = find_account(_accounts(), account_id=1)

    with pytest.raises(FinancialValidationError, match="Taxa de câmbio é obrigatória."):
        settle_entry(entry, account, 100)

    settle_entry(entry, account, 100, exchange_rate="5.00", when=datetime(2024, 6, 10))

    assert entry.status == "Pago"
    assert account.balance == Decimal("250320.75") - Decimal("500.00")
    assert entry.payments[0].to_dict()["exchangeRate"] == 5.0


def test_settle_validation_errors():
    account = find_account(_accounts(), currency="BRL")

    with pytest.raises(FinancialValidationError, match="Todos os campos"):
        settle_entry(_entry(), None, 10)
    with pytest.raises(FinancialValidationError, match="Todos os campos"):
        settle_entry(_entry(), account, "")
    with pytest.raises(FinancialValidationError, match="Todos os campos"):
        settle_entry(_entry(), account, 0)
    with pytest.raises(FinancialValidationError, match="maior que o saldo devedor"):
        settle_entry(_entry(), account, 1000.01)


def test_settle_keeps_approval_and_legal_status():
    account = find_account(_accounts(), account_id=1)
    pending = _entry(type="debit", status="Pendente de Aprovação")

    settle_entry(pending, account, 1000)

    assert pending.status == "Pendente de Aprovação"


def test_renegotiate_splits_into_monthly_installments():
    entry = _entry(invoiceId="INV-7")

    installments = renegotiate(entry, 3, date(2024, 1, 31), total="900")

    assert entry.status == "Renegociado"
    assert [i["invoiceId"] for i in installments] == ["INV-7-P1/3", "INV-7-P2/3", "INV-7-P3/3"]
    assert [i["amount"] for i in installments] == [300.0, 300.0, 300.0]
    assert [parse_datetime(i["dueDate"]).date() for i in installments] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
    ]
    assert all(i["originalEntryId"] == "fin-100" for i in installments)
    assert all("id" not in i or i["id"] == "" for i in installments)


def test_renegotiate_bounds():
    with pytest.raises(FinancialValidationError, match="Mínimo de 1 parcela."):
        renegotiate(_entry(), 0, date(2024, 1, 1))
    with pytest.raises(FinancialValidationError, match="Máximo de 48 parcelas."):
        renegotiate(_entry(), 49, date(2024, 1, 1))


def test_unified_settlement_totals_nets_debits():
    entries = [
        _entry(amount=1000),
        _entry(type="debit", amount=300),
        _entry(currency="USD", amount=50),
    ]

    totals = unified_settlement_totals(entries)

    assert totals == {"BRL": Decimal("700"), "USD": Decimal("50")}


def test_send_to_legal():
    entry = send_to_legal(_entry(), "Fase Inicial", "Cliente não responde.", "123-45")

    assert entry.status == "Jurídico"
    assert entry.to_dict()["legalStatus"] == "Fase Inicial"
    assert entry.processo_judicial == "123-45"

    with pytest.raises(FinancialValidationError, match="Status jurídico inválido: Arquivado"):
        send_to_legal(_entry(), "Arquivado")


def test_seed_ledger_is_relative_to_today():
    today = date(2024, 6, 15)
    entries = {e["id"]: e for e in initial_financial_entries(today)}

    assert len(entries) == 12
    assert parse_datetime(entries["fin-003"]["dueDate"]).date() == date(2024, 6, 10)
    assert resolve_status(FinancialEntry.from_dict(entries["fin-004"]), today) == "Parcialmente Pago"
    assert entries["fin-010"]["legalStatus"] == "Fase Inicial"


def test_date_helpers():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)
    assert parse_br_date("31/12/2024") == date(2024, 12, 31)
    assert parse_br_date("2024-12-31") is None
    assert parse_datetime("2024-06-01T10:00:00Z") == datetime(2024, 6, 1, 10, 0)
    assert parse_datetime("not a date") is None
