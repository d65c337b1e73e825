"""HTTP tests for the client and agent portal."""

from __future__ import annotations

import pytest

DRAFT = {
    "shipper": "Nexus Imports\nSão Paulo",
    "consignee": "Rotterdam Trading BV",
    "notify": "SAME AS CONSIGNEE",
    "marksAndNumbers": "N/M",
    "descriptionOfGoods": "AUTO PARTS",
    "grossWeight": "18000 KG",
    "measurement": "28 CBM",
    "blType": "express",
}


@pytest.fixture()
def shipment_id(client):
    response = client.post("/api/shipments/from-quote/COT-01832", json={})
    return response.get_json()["id"]


def test_get_draft_data(client, shipment_id):
    response = client.get(f"/api/portal/shipments/{shipment_id}/draft")

    assert response.status_code == 200
    assert response.get_json()["data"]["customer"] == "Nexus Imports"

    missing = client.get("/api/portal/shipments/PROC-0/draft")
    assert missing.status_code == 404
    assert missing.get_json()["error"].startswith("Embarque não encontrado.")


def test_submit_late_draft_adds_fee(client, shipment_id):
    response = client.post(
        f"/api/portal/shipments/{shipment_id}/draft", json={"draft": DRAFT, "isLate": True}
    )

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["blType"] == "express"
    assert data["blDraftData"]["consignee"] == "Rotterdam Trading BV"
    fee = data["charges"][-1]
    assert fee["name"] == "Taxa de Alteração de Draft Fora do Prazo"
    assert fee["sale"] == 50
    names = [m["name"] for m in data["milestones"]]
    assert "Draft de BL Recebido" in names
    assert "Enviar Draft MBL ao armador" in names

    stored = client.get(f"/api/collections/shipments/{shipment_id}").get_json()
    assert stored["blDraftData"]["descriptionOfGoods"] == "AUTO PARTS"


def test_submit_draft_requires_payload(client, shipment_id):
    response = client.post(f"/api/portal/shipments/{shipment_id}/draft", json={})

    assert response.status_code == 400
    assert response.get_json() == {"success": False, "error": "Dados do draft ausentes."}
    assert client.post("/api/portal/shipments/PROC-0/draft", json={"draft": DRAFT}).status_code == 404


def test_agent_update(client, shipment_id):
    response = client.post(
        f"/api/portal/shipments/{shipment_id}/agent-update",
        json={
            "bookingNumber": "BKG123",
            "vesselVoyage": "MAERSK PICO / 428N",
            "etd": "2024-07-25T12:00:00",
            "eta": "2024-08-20T12:00:00",
            "rateAgreed": "USD 2,500.00",
        },
    )

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["bookingNumber"] == "BKG123"
    assert data["vesselName"] == "MAERSK PICO"
    assert data["voyageNumber"] == "428N"
    agent_charge = data["charges"][-1]
    assert agent_charge["name"] == "FRETE INTERNACIONAL (Custo Agente)"
    assert agent_charge["cost"] == 2500
    assert agent_charge["costCurrency"] == "USD"
    embarque = next(m for m in data["milestones"] if m["name"] == "Embarque")
    assert embarque["predictedDate"].startswith("2024-07-25")

    assert client.post("/api/portal/shipments/PROC-0/agent-update", json={}).status_code == 404
