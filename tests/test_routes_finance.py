"""HTTP tests for the ledger, demurrage and cost sheet routes."""

from __future__ import annotations

import pytest

DEMURRAGE_ID = "PROC-1832-12345-MSKU1234567-demurrage"


@pytest.fixture()
def overdue_import(client):
    """Store an import whose container was never returned."""

    client.put(
        "/api/collections/shipments",
        json=[
            {
                "id": "PROC-1832-12345",
                "origin": "Roterdã, NL",
                "destination": "Santos, BR",
                "customer": "Nexus Imports",
                "carrier": "Maersk Line",
                "eta": "2024-06-01T00:00:00",
                "containers": [{"id": "c1", "number": "MSKU1234567", "type": "40'HC"}],
            }
        ],
    )
    return client


def test_ledger_lists_balances(client):
    entries = client.get("/api/financial-entries?type=credit").get_json()

    assert {e["type"] for e in entries} == {"credit"}
    partial = next(e for e in entries if e["id"] == "fin-004")
    assert partial["balance"] == 2000
    assert partial["displayStatus"] == "Parcialmente Pago"
    legal = next(e for e in entries if e["id"] == "fin-010")
    assert legal["displayStatus"] == "Jurídico"


def test_create_manual_entry(client):
    response = client.post(
        "/api/financial-entries",
        json={
            "type": "debit",
            "partner": "Locadora",
            "description": "Aluguel",
            "amount": "8500",
            "currency": "BRL",
            "dueDate": "2024-07-05",
        },
    )

    assert response.status_code == 201
    assert response.get_json()["invoiceId"] == "MAN-20240705"
    assert client.post("/api/financial-entries", json={"type": "x"}).status_code == 400


def test_settlement_summary_by_currency(client):
    response = client.get("/api/financial-entries/summary?id=fin-001&id=fin-004&id=fin-005")

    assert response.get_json() == {"BRL": 12500.5, "USD": -800.0}


def test_settle_credit_moves_account_balance(client):
    response = client.post(
        "/api/financial-entries/fin-001/settle", json={"accountId": "1", "amount": "500.50"}
    )

    body = response.get_json()
    assert response.status_code == 200
    assert body["entry"]["balance"] == 12000
    assert body["payment"]["accountId"] == 1
    accounts = client.get("/api/collections/bank_accounts").get_json()
    assert accounts[0]["balance"] == pytest.approx(250821.25)


def test_settle_validation(client):
    too_much = client.post(
        "/api/financial-entries/fin-001/settle", json={"accountId": "1", "amount": "999999"}
    )
    assert too_much.get_json()["errors"] == [
        "O valor do pagamento não pode ser maior que o saldo devedor."
    ]

    no_rate = client.post(
        "/api/financial-entries/fin-005/settle", json={"accountId": "1", "amount": "100"}
    )
    assert no_rate.get_json()["errors"] == ["Taxa de câmbio é obrigatória."]

    assert client.post("/api/financial-entries/fin-x/settle", json={}).status_code == 404


def test_renegotiate_entry(client):
    response = client.post(
        "/api/financial-entries/fin-003/renegotiate",
        json={"installments": "3", "firstDueDate": "2024-08-01"},
    )

    assert response.status_code == 201
    installments = response.get_json()["installments"]
    assert [i["invoiceId"] for i in installments] == [
        "INV-PROC-00123-51881-P1/3",
        "INV-PROC-00123-51881-P2/3",
        "INV-PROC-00123-51881-P3/3",
    ]
    assert [i["dueDate"][:10] for i in installments] == ["2024-08-01", "2024-09-01", "2024-10-01"]
    original = client.get("/api/collections/financial_entries/fin-003").get_json()
    assert original["status"] == "Renegociado"


def test_refer_to_legal(client):
    response = client.post(
        "/api/financial-entries/fin-003/legal",
        json={"lawyerId": "4", "comments": "Cliente inadimplente há 90 dias."},
    )

    body = response.get_json()
    assert body["lawyer"] == "Advocacia Marítima XYZ"
    assert body["entry"]["status"] == "Jurídico"
    assert body["entry"]["legalStatus"] == "Extrajudicial"

    missing = client.post(
        "/api/financial-entries/fin-003/legal",
        json={"lawyerId": "999", "comments": "Cliente inadimplente há 90 dias."},
    )
    assert missing.get_json()["errors"] == ["Advogado não encontrado."]


def test_demurrage_windows(overdue_import):
    items = overdue_import.get("/api/demurrage").get_json()

    assert [i["id"] for i in items] == [DEMURRAGE_ID]
    assert items[0]["status"] == "overdue"
    assert items[0]["profit"] == pytest.approx(items[0]["sale"] - items[0]["cost"])

    detail = overdue_import.get(f"/api/demurrage/{DEMURRAGE_ID}").get_json()
    assert detail["costLines"]
    assert detail["label"].startswith("Total Demurrage (")
    assert overdue_import.get("/api/demurrage/unknown").status_code == 404


def test_invoice_demurrage(overdue_import):
    response = overdue_import.post(f"/api/demurrage/{DEMURRAGE_ID}/invoice")

    assert response.status_code == 201
    entry = response.get_json()
    assert entry["invoiceId"] == "DEM-MSKU1234567"
    assert entry["accountId"] == 2
    ledger = overdue_import.get("/api/collections/financial_entries").get_json()
    assert entry["id"] in {e["id"] for e in ledger}


def test_exchange_rates(client):
    assert client.get("/api/exchange-rates").get_json()["USD"] == pytest.approx(5.43)


def test_cost_sheet(client):
    totals = client.get("/api/cost-sheet/quotes/COT-01832").get_json()

    assert totals["totalSaleBRL"] == pytest.approx(18534.10)
    assert totals["totalCostBRL"] == pytest.approx(16225.0)
    assert totals["totalProfitBRL"] == pytest.approx(2309.10)
    assert client.get("/api/cost-sheet/invoices/1").status_code == 404
    assert client.get("/api/cost-sheet/quotes/COT-0").status_code == 404


def test_commissions_listing_and_payment(client):
    client.put(
        "/api/collections/partners",
        json=[
            {
                "id": 50,
                "name": "Carlos Representações",
                "roles": {"comissionado": True},
                "commissionAgreement": {
                    "amount": 300,
                    "unit": "por_container",
                    "commissionClients": ["Nexus Imports"],
                },
            }
        ],
    )
    client.put(
        "/api/collections/shipments",
        json=[{"id": "PROC-7", "origin": "A", "destination": "B", "customer": "Nexus Imports"}],
    )

    summary = client.get("/api/commissions").get_json()[0]
    assert summary["partnerName"] == "Carlos Representações"
    assert summary["totalPending"] == 300
    assert summary["shipments"][0]["status"] == "Em Aberto"

    paid = client.post("/api/commissions/50/PROC-7/pay")
    assert paid.status_code == 201
    assert paid.get_json()["invoiceId"] == "COM-PROC-7"
    assert client.get("/api/commissions").get_json()[0]["totalPaid"] == 300

    again = client.post("/api/commissions/50/PROC-7/pay")
    assert again.status_code == 400
    assert client.post("/api/commissions/50/PROC-0/pay").status_code == 404
