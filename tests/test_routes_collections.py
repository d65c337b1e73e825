"""HTTP tests for the registry and collection routes."""

from __future__ import annotations

import re

SIMULATION = {
    "simulationName": "Importação A",
    "customerName": "Nexus Imports",
    "freightCostUSD": "100",
    "insuranceCostUSD": "0",
    "exchangeRate": "5",
    "thcValueBRL": "0",
    "otherExpensesBRL": "0",
    "icmsRate": "0",
    "itens": [
        {
            "descricao": "Peças",
            "quantidade": 10,
            "valorUnitarioUSD": 100,
            "ncm": "84713012",
            "pesoKg": 50,
            "taxRates": {"ncm": "84713012", "ii": 10, "ipi": 0, "pis": 0, "cofins": 0},
        }
    ],
}


def test_collection_read_and_revisions(client):
    response = client.get("/api/collections/partners")

    assert response.status_code == 200
    assert response.get_json()[0]["name"] == "Nexus Imports"
    assert client.get("/api/collections/revisions").get_json() == {"partners": 1}
    assert client.get("/api/collections/invoices").status_code == 404


def test_get_single_record(client):
    assert client.get("/api/collections/quotes/COT-01832").get_json()["customer"] == "Nexus Imports"
    assert client.get("/api/collections/partners/1").get_json()["name"] == "Nexus Imports"
    assert client.get("/api/collections/quotes/COT-0").status_code == 404


def test_replace_collection(client):
    response = client.put("/api/collections/shipments", json=[{"id": "PROC-1"}])

    assert response.get_json() == {"revision": 1}
    assert client.get("/api/collections/shipments").get_json() == [{"id": "PROC-1"}]
    assert client.put("/api/collections/shipments", json={"id": "x"}).status_code == 400
    assert client.put("/api/collections/unknown", json=[]).status_code == 404


def test_create_and_update_partner(client):
    payload = {
        "name": "Cliente Novo",
        "roles": {"cliente": True},
        "contacts": [
            {
                "name": "Carla Souza",
                "email": "carla@cliente.com.br",
                "phone": "+55 11 99999-0000",
                "departments": ["Comercial"],
            }
        ],
    }

    created = client.post("/api/partners", json=payload)
    assert created.status_code == 201
    assert created.get_json()["id"] == 138

    updated = client.put("/api/partners/138", json=dict(payload, name="Cliente Renomeado"))
    assert updated.get_json()["name"] == "Cliente Renomeado"
    assert client.put("/api/partners/9999", json=payload).status_code == 404

    invalid = client.post("/api/partners", json={"name": "X"})
    assert invalid.status_code == 400
    assert "O nome do parceiro é obrigatório" in invalid.get_json()["errors"]


def test_fees_filter_and_create(client):
    all_fees = client.get("/api/fees").get_json()
    filtered = client.get("/api/fees?modal=Marítimo&direction=Importação&chargeType=LCL").get_json()
    assert len(filtered) < len(all_fees)
    assert 5 in {fee["id"] for fee in filtered}

    created = client.post(
        "/api/fees",
        json={
            "name": "Taxa Nova",
            "value": "100",
            "currency": "BRL",
            "type": "Fixo",
            "unit": "Por Processo",
            "modal": "Marítimo",
            "direction": "Importação",
        },
    )
    assert created.status_code == 201
    assert created.get_json()["id"] == 33


def test_bank_account_creation(client):
    response = client.post(
        "/api/bank-accounts",
        json={
            "name": "Conta EUR",
            "bankName": "Itaú",
            "agency": "0001",
            "accountNumber": "12345-6",
            "currency": "EUR",
            "balance": "1000",
        },
    )

    assert response.status_code == 201
    ids = [a["id"] for a in client.get("/api/collections/bank_accounts").get_json()]
    assert response.get_json()["id"] == max(ids)


def test_rates_search_and_import(client):
    found = client.get("/api/rates?origin=santos&destination=roterdã&modal=Marítimo").get_json()
    assert {r["id"] for r in found} == {1, 2, 3, 8, 10}
    assert all("expired" in r for r in found)

    imported = client.post(
        "/api/rates",
        json={
            "rates": [
                {"origin": "Itajaí, BR", "destination": "Hamburgo, DE", "carrier": "MSC", "modal": "Marítimo", "rate": "USD 1900", "container": "20'GP", "transitTime": "30", "validity": "31/12/2099", "freeTime": "14"},
                {"origin": "Itajaí, BR", "destination": "Hamburgo, DE", "carrier": "MSC", "modal": "Marítimo", "rate": "USD 2900", "container": "40'HC", "transitTime": "30", "validity": "31/12/2099", "freeTime": "14"},
            ]
        },
    )
    assert imported.status_code == 201
    assert [r["id"] for r in imported.get_json()] == [20, 21]
    found = client.get("/api/rates?origin=itajaí&destination=hamburgo").get_json()
    assert [r["expired"] for r in found if r["id"] >= 20] == [False, False]

    assert client.post("/api/rates", json={"rates": []}).status_code == 400


def test_task_rules_and_due_tasks(client):
    response = client.post(
        "/api/task-rules",
        json={
            "modal": "IMPORTACAO_MARITIMA",
            "days": "3",
            "timing": "ANTES",
            "milestone": "ETA",
            "action": "ALERTA",
            "recipient": "OPERACIONAL",
            "content": "Cobrar numerário do cliente.",
        },
    )

    assert response.status_code == 201
    assert re.fullmatch(r"rule-\d+", response.get_json()["id"])
    assert client.get("/api/tasks/due").get_json() == []
    assert client.post("/api/task-rules", json={"days": "-1"}).status_code == 400


def test_open_shipment_from_quote(client):
    response = client.post(
        "/api/shipments/from-quote/COT-01832", json={"responsibleUser": "Ana"}
    )

    assert response.status_code == 201
    shipment = response.get_json()
    assert re.fullmatch(r"PROC-01832-\d{5}", shipment["id"])
    assert client.get(f"/api/collections/shipments/{shipment['id']}").status_code == 200
    assert client.post("/api/shipments/from-quote/COT-0").status_code == 404


def test_simulation_calculate_and_save(client):
    result = client.post("/api/simulations/calculate", json=SIMULATION).get_json()
    assert result["custoTotal"] == 6050
    assert result["totalII"] == 550

    missing_rates = dict(SIMULATION, itens=[dict(SIMULATION["itens"][0], taxRates=None)])
    response = client.post("/api/simulations/calculate", json=missing_rates)
    assert response.status_code == 400

    saved = client.post("/api/simulations", json=SIMULATION)
    assert saved.status_code == 201
    assert saved.get_json()["name"] == "Importação A"
    assert client.get("/api/collections/simulations").get_json()[0]["id"] == saved.get_json()["id"]

    assert client.post("/api/simulations/calculate", json={}).status_code == 400


def test_simulation_rejects_full_icms_rate(client):
    response = client.post("/api/simulations/calculate", json=dict(SIMULATION, icmsRate="100"))

    assert response.status_code == 400
    assert response.get_json() == {"errors": ["A alíquota de ICMS deve ser menor que 100%."]}
