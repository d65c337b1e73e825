"""Tests for partners, fees, rates and task automation rules."""

from __future__ import annotations

from datetime import date

from werkzeug.security import check_password_hash

from carga_common.fees import Fee, fees_for, initial_employees, initial_fees, next_fee_id
from carga_common.partners import (
    Partner,
    agents,
    clients,
    find_partner_by_name,
    initial_partners,
    link_despachante_clients,
    next_partner_id,
)
from carga_common.rates import (
    Rate,
    find_carrier_by_name,
    get_carrier_by_scac,
    initial_rates,
    is_expired,
    next_rate_id,
    search_rates,
)
from carga_common.shipments import Shipment
from carga_common.tasks import (
    TaskAutomationRule,
    due_tasks,
    initial_task_rules,
    rule_matches,
    shipment_modal,
    shipment_services,
    trigger_date,
)


def _partners():
    return [Partner.from_dict(p) for p in initial_partners()]


def test_partner_roles_and_lookup():
    partners = _partners()

    assert [p.name for p in clients(partners)][0] == "Nexus Imports"
    assert "Ocean Express Logistics" in [p.name for p in agents(partners)]
    assert find_partner_by_name(partners, "  nexus imports ").id == 1
    assert find_partner_by_name(partners, "Nexus") is None
    assert next_partner_id(partners) == 138


def test_partner_round_trip_keeps_extras():
    payload = initial_partners()[0]

    restored = Partner.from_dict(payload).to_dict()

    assert restored["observations"] == payload["observations"]
    assert restored["exchangeRateAgio"] == 2.5
    assert restored["contacts"][0]["email"] == "joao@nexus.com"


def test_link_despachante_clients():
    """Clients whose broker contact points at the broker are linked to it."""

    partners = _partners()
    nexus = partners[0]
    nexus.contacts[0].departments.append("Despachante")
    nexus.contacts[0].despachante_id = 5

    linked = link_despachante_clients(partners)

    broker = next(p for p in linked if p.id == 5)
    assert broker.is_despachante
    assert broker.clients_linked == ["Nexus Imports"]


def test_fees_filter_by_modal_direction_and_load():
    fees = [Fee.from_dict(f) for f in initial_fees()]

    lcl_import = fees_for(fees, "Marítimo", "Importação", "LCL")
    names = {fee.id for fee in lcl_import}
    assert 5 in names and 14 in names
    assert 1 not in names

    air_export = {fee.id for fee in fees_for(fees, "Aéreo", "Exportação")}
    assert 28 in air_export and 1 not in air_export
    assert next_fee_id(fees) == 33


def test_employee_seed_hashes_password():
    access = initial_employees()[0]["systemAccess"]

    assert "password" not in access
    assert check_password_hash(access["passwordHash"], "senha_super_segura")


def test_rates_search_and_expiry():
    rates = [Rate.from_dict(r) for r in initial_rates()]

    santos = search_rates(rates, "santos", "roterdã", "Marítimo")
    assert {r.id for r in santos} == {1, 2, 3, 8, 10}
    assert search_rates(rates, "guarulhos", "", "Aéreo")[0].carrier == "LATAM Cargo"
    assert next_rate_id(rates) == 20

    rate = rates[0]
    assert is_expired(rate, date(2025, 1, 1))
    assert not is_expired(rate, date(2024, 12, 31))
    rate.validity = "sem data"
    assert is_expired(rate, date(2020, 1, 1))


def test_carrier_lookup():
    assert find_carrier_by_name("Maersk Line").scac == "MAEU"
    assert find_carrier_by_name("maeu").name == "Maersk"
    assert find_carrier_by_name("") is None
    assert get_carrier_by_scac("maeu").name == "Maersk"


def _shipment(**overrides):
    payload = {
        "id": "PROC-1",
        "origin": "Xangai, CN",
        "destination": "Santos, BR",
        "customer": "Nexus Imports",
        "eta": "2024-06-10T00:00:00",
        "etd": "2024-05-01T00:00:00",
        "details": {"cargo": "1x40HC"},
        "charges": [
            {"id": "1", "name": "Despacho Aduaneiro", "supplier": "CargaInteligente"},
            {"id": "2", "name": "Seguro Internacional", "supplier": "Seguradora"},
        ],
    }
    payload.update(overrides)
    return Shipment.from_dict(payload)


def test_shipment_modal_and_services():
    assert shipment_modal(_shipment()) == "IMPORTACAO_MARITIMA"
    air = _shipment(destination="Miami, US", details={"cargo": "500kg"})
    assert shipment_modal(air) == "EXPORTACAO_AEREA"
    assert shipment_services(_shipment()) == ["DESPACHO_ADUANEIRO", "SEGURO_INTERNACIONAL"]


def test_rule_conditions_and_trigger_date():
    rules = {r["id"]: TaskAutomationRule.from_dict(r) for r in initial_task_rules()}
    shipment = _shipment()

    assert rule_matches(rules["rule-1"], shipment)
    assert not rule_matches(rules["rule-2"], shipment)
    assert rule_matches(rules["rule-3"], shipment)
    assert not rule_matches(rules["rule-3"], _shipment(customer="Outro Cliente"))
    assert not rule_matches(rules["rule-1"], _shipment(charges=[]))

    assert trigger_date(rules["rule-1"], shipment) == date(2024, 6, 7)
    assert trigger_date(rules["rule-3"], shipment) == date(2024, 6, 11)
    assert trigger_date(rules["rule-1"], _shipment(eta=None)) is None


def test_due_tasks_fire_on_trigger_date():
    rules = [TaskAutomationRule.from_dict(r) for r in initial_task_rules()]

    tasks = due_tasks(rules, [_shipment()], today=date(2024, 6, 7))

    assert [task.to_dict()["ruleId"] for task in tasks] == ["rule-1"]
    assert tasks[0].to_dict()["referenceDate"] == "2024-06-07"
    assert due_tasks(rules, [_shipment()], today=date(2024, 6, 8)) == []
