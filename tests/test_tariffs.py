"""Tests for demurrage tariffs, windows and invoices."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from carga_common.financials import BankAccount
from carga_common.shipments import Shipment
from carga_common.tariffs import (
    DemurrageInvoiceError,
    DemurrageTariff,
    LtiTariff,
    TariffPeriod,
    breakdown_total_label,
    build_demurrage_invoice,
    build_demurrage_items,
    calculate_tiered_charge,
    container_category,
    demurrage_cost_and_sale,
    find_demurrage_tariff,
    initial_demurrage_tariffs,
    initial_lti_tariffs,
)


def _tariffs():
    return (
        [DemurrageTariff.from_dict(t) for t in initial_demurrage_tariffs()],
        [LtiTariff.from_dict(t) for t in initial_lti_tariffs()],
    )


def _accounts(*currencies):
    return [
        BankAccount(
            id=index + 1,
            name=f"Conta {currency}",
            bank_name="Banco",
            agency="0001",
            account_number="123",
            currency=currency,
            balance=Decimal("0"),
        )
        for index, currency in enumerate(currencies)
    ]


def _import_shipment(**overrides):
    payload = {
        "id": "PROC-1832-12345",
        "origin": "Roterdã, NL",
        "destination": "Santos, BR",
        "customer": "Nexus Imports",
        "carrier": "Maersk Line",
        "eta": "2024-06-01T00:00:00",
        "containers": [{"id": "c1", "number": "MSKU1234567", "type": "40'HC"}],
    }
    payload.update(overrides)
    return Shipment.from_dict(payload)


def test_tiered_charge_walks_periods_in_order():
    """Twelve days on the Maersk dry tariff cross all three periods."""

    cost, _ = _tariffs()
    lines = calculate_tiered_charge(12, cost[0].cost_periods)

    assert [line.days for line in lines] == [5, 5, 2]
    assert [line.label for line in lines] == [
        "De 1 a 5 dias",
        "De 6 a 10 dias",
        "De 11 a ... dias",
    ]
    assert sum(line.total for line in lines) == Decimal("1725")


def test_tiered_charge_skips_unreached_periods():
    periods = [TariffPeriod(1, Decimal("10"), 3), TariffPeriod(4, Decimal("20"))]

    lines = calculate_tiered_charge(2, periods)

    assert len(lines) == 1
    assert lines[0].total == Decimal("20")
    assert calculate_tiered_charge(0, periods) == []


@pytest.mark.parametrize(
    "container_type, category",
    [("40'HC", "dry"), ("20'GP", "dry"), ("40'RF", "reefer"), ("40'NOR", "reefer"), ("40'OT", "special"), ("20'FR", "special")],
)
def test_container_category(container_type, category):
    assert container_category(container_type) == category


def test_find_demurrage_tariff_matches_carrier_loosely():
    """"Maersk Line" uses the Maersk tariff; unknown carriers fall back."""

    cost, _ = _tariffs()

    assert find_demurrage_tariff(cost, "Maersk Line", "dry").id == "tariff-maersk-dry"
    assert find_demurrage_tariff(cost, "MSC", "dry").id == "tariff-msc-dry"
    assert find_demurrage_tariff(cost, "CMA CGM", "dry").id == "tariff-maersk-dry"
    assert find_demurrage_tariff(cost, "Maersk", "special") is None


def test_demurrage_cost_and_sale_profit():
    cost, sale = _tariffs()

    quote = demurrage_cost_and_sale(
        12,
        carrier="Maersk Line",
        container_type="40'HC",
        demurrage_tariffs=cost,
        lti_tariffs=sale,
    )

    assert quote.total_cost == Decimal("1725")
    assert quote.total_sale == Decimal("2300")
    assert quote.profit == Decimal("575")
    assert breakdown_total_label(12) == "Total Demurrage (12 dias)"


def test_import_window_overdue_against_today():
    """An unreturned container is measured against today."""

    shipment = _import_shipment()

    items = build_demurrage_items([shipment], today=date(2024, 6, 20))

    assert len(items) == 1
    item = items[0]
    assert item.id == "PROC-1832-12345-MSKU1234567-demurrage"
    assert item.free_days == 7
    assert item.end_date == date(2024, 6, 7)
    assert item.overdue_days == 13
    assert item.status == "overdue"
    assert item.to_dict()["effectiveEndDate"] is None


def test_import_window_uses_return_date_and_free_time():
    shipment = _import_shipment(
        containers=[
            {
                "id": "c1",
                "number": "MSKU1234567",
                "type": "40'HC",
                "freeTime": "14 dias",
                "effectiveReturnDate": "2024-06-10T00:00:00",
            }
        ]
    )

    item = build_demurrage_items([shipment], today=date(2024, 7, 30))[0]

    assert item.end_date == date(2024, 6, 14)
    assert item.overdue_days == 0
    assert item.to_dict()["effectiveEndDate"] == "2024-06-10"


def test_open_window_close_to_end_is_at_risk():
    shipment = _import_shipment()

    assert build_demurrage_items([shipment], today=date(2024, 6, 5))[0].status == "at_risk"
    assert build_demurrage_items([shipment], today=date(2024, 5, 20))[0].status == "ok"


def test_export_window_requires_empty_pickup():
    """Detention starts at the empty pickup and ends at the gate in."""

    base = {
        "id": "PROC-122-11111",
        "origin": "Itajaí, BR",
        "destination": "Hamburgo, DE",
        "customer": "Nexus Imports",
        "etd": "2024-06-15T00:00:00",
        "containers": [{"id": "c1", "number": "HLCU7654321", "type": "20'GP"}],
    }
    assert build_demurrage_items([Shipment.from_dict(base)], today=date(2024, 6, 20)) == []

    base["milestones"] = [
        {
            "name": "Retirada do Vazio",
            "predictedDate": "2024-06-01T00:00:00",
            "effectiveDate": "2024-06-01T00:00:00",
        },
        {
            "name": "Prazo de Entrega (Gate In)",
            "predictedDate": "2024-06-09T00:00:00",
            "effectiveDate": "2024-06-10T00:00:00",
        },
    ]
    item = build_demurrage_items([Shipment.from_dict(base)], today=date(2024, 6, 20))[0]

    assert item.type == "detention"
    assert item.end_date == date(2024, 6, 7)
    assert item.overdue_days == 3


def test_build_demurrage_invoice():
    cost, sale = _tariffs()
    item = build_demurrage_items([_import_shipment()], today=date(2024, 6, 20))[0]
    quote = demurrage_cost_and_sale(
        item.overdue_days,
        carrier="Maersk Line",
        container_type="40'HC",
        demurrage_tariffs=cost,
        lti_tariffs=sale,
    )

    entry = build_demurrage_invoice(item, quote, _accounts("BRL", "USD"), today=date(2024, 6, 20))

    assert entry["invoiceId"] == "DEM-MSKU1234567"
    assert entry["partner"] == "Nexus Imports"
    assert entry["dueDate"] == "2024-07-20T00:00:00"
    assert entry["currency"] == "USD"
    assert entry["accountId"] == 2
    assert entry["amount"] == float(quote.total_sale)
    assert entry["processId"] == "PROC-1832-12345"


def test_build_demurrage_invoice_errors():
    cost, sale = _tariffs()
    item = build_demurrage_items([_import_shipment()], today=date(2024, 6, 20))[0]
    empty = demurrage_cost_and_sale(
        0, carrier="Maersk", container_type="40'HC", demurrage_tariffs=cost, lti_tariffs=sale
    )
    charged = demurrage_cost_and_sale(
        3, carrier="Maersk", container_type="40'HC", demurrage_tariffs=cost, lti_tariffs=sale
    )

    with pytest.raises(DemurrageInvoiceError) as empty_error:
        build_demurrage_invoice(item, empty, _accounts("USD"))
    assert empty_error.value.title == "Fatura Vazia"

    with pytest.raises(DemurrageInvoiceError) as account_error:
        build_demurrage_invoice(item, charged, _accounts("BRL"))
    assert account_error.value.title == "Conta Bancária Não Encontrada"
