"""Tests for the import landed cost simulator."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from carga_common.simulation import (
    MISSING_RATES_MESSAGE,
    SimulationError,
    SimulationInput,
    build_simulation_record,
    calculate_simulation,
)


def _form(**overrides):
    payload = {
        "simulationName": "Teste de Custo",
        "customerName": "Nexus Imports",
        "freightCostUSD": 100,
        "insuranceCostUSD": 0,
        "exchangeRate": 5,
        "thcValueBRL": 0,
        "otherExpensesBRL": 0,
        "icmsRate": 0,
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
    payload.update(overrides)
    return SimulationInput.from_dict(payload)


def test_single_item_without_icms():
    result = calculate_simulation(_form())

    assert result.valor_aduaneiro == Decimal("5500")
    assert result.total_ii == Decimal("550")
    assert result.total_icms == Decimal("0")
    assert result.custo_total == Decimal("6050")
    assert result.itens[0].custo_unitario_final == Decimal("605")


def test_icms_is_grossed_up():
    """ICMS is charged "por dentro": base / (1 - rate) * rate."""

    result = calculate_simulation(_form(icmsRate=20))

    assert float(result.total_icms) == pytest.approx(1512.5)
    assert float(result.custo_total) == pytest.approx(7562.5)


def test_local_expenses_follow_fob_share():
    items = [
        {"descricao": "A", "quantidade": 1, "valorUnitarioUSD": 300, "ncm": "1", "pesoKg": 1,
         "taxRates": {"ii": 0, "ipi": 0, "pis": 0, "cofins": 0}},
        {"descricao": "B", "quantidade": 1, "valorUnitarioUSD": 100, "ncm": "2", "pesoKg": 1,
         "taxRates": {"ii": 0, "ipi": 0, "pis": 0, "cofins": 0}},
    ]
    result = calculate_simulation(_form(itens=items, thcValueBRL=800, otherExpensesBRL=200))

    assert [r.despesas_locais_rateadas for r in result.itens] == [Decimal("750"), Decimal("250")]
    assert result.to_dict()["itens"][0]["despesasLocaisRateadas"] == 750.0


def test_missing_rates_and_zero_fob():
    without_rates = _form(
        itens=[{"descricao": "A", "quantidade": 1, "valorUnitarioUSD": 1, "ncm": "1", "pesoKg": 1}]
    )
    with pytest.raises(SimulationError, match=MISSING_RATES_MESSAGE):
        calculate_simulation(without_rates)

    zero = _form(
        itens=[{"descricao": "A", "quantidade": 0, "valorUnitarioUSD": 1, "ncm": "1", "pesoKg": 1,
                "taxRates": {"ii": 0, "ipi": 0, "pis": 0, "cofins": 0}}]
    )
    with pytest.raises(SimulationError, match="O valor FOB total deve ser maior que zero."):
        calculate_simulation(zero)


def test_icms_defaults_to_17_percent():
    form = SimulationInput.from_dict({"simulationName": "x", "customerName": "y"})

    assert form.icms_rate == Decimal("17")


def test_build_simulation_record():
    created = datetime(2024, 6, 1, 9, 30)

    record = build_simulation_record(_form(), created_at=created)

    assert record["id"] == f"sim-{int(created.timestamp() * 1000)}"
    assert record["name"] == "Teste de Custo"
    assert record["customer"] == "Nexus Imports"
    assert record["createdAt"] == "2024-06-01T09:30:00"
    assert record["data"]["itens"][0]["taxRates"]["ii"] == 10.0


def test_full_icms_rate_is_rejected():
    with pytest.raises(SimulationError, match="menor que 100%"):
        calculate_simulation(_form(icmsRate=100))
