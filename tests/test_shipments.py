"""Tests for shipment creation, milestones and portal updates."""

from __future__ import annotations

import random
import re
from datetime import datetime
from decimal import Decimal

from carga_common.rates import initial_quotes
from carga_common.shipments import (
    CHECKLIST_DOCUMENTS,
    BLDraftData,
    Shipment,
    apply_agent_update,
    apply_bl_draft,
    create_shipment_from_quote,
    generate_initial_milestones,
    merge_tracking_details,
    parse_agreed_rate,
    parse_transit_days,
)

CREATED = datetime(2024, 7, 1)


def _quote(quote_id="COT-01832"):
    return next(q for q in initial_quotes() if q["id"] == quote_id)


def test_import_plan_has_return_reminder():
    milestones = generate_initial_milestones(True, "25-30 dias", "14 dias", CREATED)

    assert len(milestones) == 11
    dates = [m.predicted_date for m in milestones]
    assert dates == sorted(dates)
    arrival = next(m for m in milestones if m.name == "Chegada ao Destino")
    assert arrival.predicted_date == datetime(2024, 8, 14)
    reminder = next(m for m in milestones if m.name == "Verificar Devolução do Contêiner")
    assert reminder.predicted_date == datetime(2024, 8, 25)
    assert reminder.details == "Free time termina em 27/08/2024"


def test_export_plan_has_gate_in_deadline():
    milestones = generate_initial_milestones(False, "25-30 dias", "7", CREATED)

    assert len(milestones) == 9
    gate_in = next(m for m in milestones if m.name == "Prazo de Entrega (Gate In)")
    assert gate_in.predicted_date == datetime(2024, 7, 5)
    delivery = next(m for m in milestones if m.name == "Confirmação de Entrega")
    assert delivery.predicted_date == datetime(2024, 8, 10)


def test_transit_days_uses_upper_bound():
    assert parse_transit_days("25-30 dias") == 30
    assert parse_transit_days("1 dia") == 1
    assert parse_transit_days("N/A") == 30


def test_create_shipment_from_quote():
    shipment = create_shipment_from_quote(
        _quote(),
        shipper={"name": "Nexus Imports"},
        responsible_user="Ana",
        now=CREATED,
        rng=random.Random(7),
    )

    assert re.fullmatch(r"PROC-01832-\d{5}", shipment.id)
    assert shipment.quote_id == "COT-01832"
    assert not shipment.is_import
    assert len(shipment.milestones) == 9
    assert [d["name"] for d in shipment.documents] == list(CHECKLIST_DOCUMENTS)
    assert all(d["status"] == "pending" for d in shipment.documents)
    assert [c.name for c in shipment.charges][0] == "FRETE MARÍTIMO"
    assert shipment.details.free_time == "14 dias"


def test_shipment_round_trip_keeps_unknown_keys():
    payload = create_shipment_from_quote(_quote(), now=CREATED).to_dict()
    payload["portalNotes"] = "manter"

    restored = Shipment.from_dict(payload)

    assert restored.extras == {"portalNotes": "manter"}
    assert restored.to_dict()["portalNotes"] == "manter"


def test_milestones_without_dates_survive_round_trip():
    shipment = Shipment.from_dict(
        {
            "id": "PROC-1",
            "origin": "A",
            "destination": "B",
            "customer": "C",
            "milestones": [
                {"name": "Com data", "dueDate": "2024-07-01T00:00:00"},
                {"name": "Sem data"},
            ],
        }
    )

    assert [m.name for m in shipment.milestones] == ["Com data", "Sem data"]
    restored = shipment.to_dict()["milestones"][1]
    assert restored["name"] == "Sem data"
    assert restored["predictedDate"] is None
    assert restored["status"] == "pending"


def test_apply_bl_draft_late_fee():
    shipment = create_shipment_from_quote(_quote(), now=CREATED)
    draft = BLDraftData.from_dict(
        {
            "shipper": "Nexus Imports",
            "consignee": "Rotterdam BV",
            "notify": "Same as consignee",
            "marksAndNumbers": "N/M",
            "descriptionOfGoods": "Auto parts",
            "grossWeight": "12000",
            "measurement": "28",
            "blType": "express",
        }
    )
    charges_before = len(shipment.charges)

    apply_bl_draft(shipment, draft, is_late=True, now=datetime(2024, 7, 3, 10, 0))

    assert shipment.bl_type == "express"
    assert shipment.bl_draft_data.description_of_goods == "Auto parts"
    assert [m.name for m in shipment.milestones[-2:]] == [
        "Draft de BL Recebido",
        "Enviar Draft MBL ao armador",
    ]
    fee = shipment.charges[-1]
    assert len(shipment.charges) == charges_before + 1
    assert fee.name == "Taxa de Alteração de Draft Fora do Prazo"
    assert fee.sale == Decimal("50")
    assert fee.sale_currency == "USD"
    assert fee.sacado == "Nexus Imports"


def test_apply_bl_draft_on_time_has_no_fee():
    shipment = create_shipment_from_quote(_quote(), now=CREATED)
    charges_before = len(shipment.charges)

    apply_bl_draft(shipment, BLDraftData.from_dict({}), is_late=False)

    assert len(shipment.charges) == charges_before
    assert shipment.bl_type == "original"


def test_parse_agreed_rate():
    assert parse_agreed_rate("USD 2,500.00") == (Decimal("2500.00"), "USD")
    assert parse_agreed_rate("R$ 1500") == (Decimal("1500"), "BRL")
    assert parse_agreed_rate("") == (Decimal("0"), "BRL")
    assert parse_agreed_rate("USD 2.500.00") == (Decimal("2.5"), "USD")
    assert parse_agreed_rate("a combinar") == (Decimal("0"), "BRL")


def test_apply_agent_update():
    shipment = create_shipment_from_quote(
        _quote(), agent={"name": "Ocean Express Logistics"}, now=CREATED
    )

    apply_agent_update(
        shipment,
        {
            "bookingNumber": "BKG123",
            "vesselVoyage": "MAERSK PICO / 245W",
            "etd": "2024-07-20T00:00:00",
            "eta": "2024-08-18T00:00:00",
            "docsCutoff": "2024-07-17T00:00:00",
            "rateAgreed": "USD 2,500.00",
        },
        now=CREATED,
    )

    assert shipment.booking_number == "BKG123"
    assert shipment.vessel_name == "MAERSK PICO"
    assert shipment.voyage_number == "245W"
    assert shipment.find_milestone("chegada").predicted_date == datetime(2024, 8, 18)
    assert shipment.find_milestone("cut off documental").predicted_date == datetime(2024, 7, 17)
    freight = shipment.charges[-1]
    assert freight.name == "FRETE INTERNACIONAL (Custo Agente)"
    assert freight.supplier == "Ocean Express Logistics"
    assert freight.cost == Decimal("2500.00")


def test_merge_tracking_details():
    shipment = create_shipment_from_quote(_quote(), now=CREATED)
    original_id = shipment.id

    merge_tracking_details(
        shipment,
        {"id": "IGNORED", "vesselName": "MAERSK SEOUL", "masterBillNumber": "MBL-1"},
    )

    assert shipment.id == original_id
    assert shipment.vessel_name == "MAERSK SEOUL"
    assert shipment.master_bill_number == "MBL-1"
