"""Landed cost simulation for Brazilian import declarations (DI).

The customs value is the FOB total plus international freight and insurance,
converted to BRL. It is apportioned to each item by its FOB share; the federal
taxes are applied per item and ICMS is grossed up ("por dentro") on top of
them. Local expenses (THC and others) follow the same apportionment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

MISSING_RATES_MESSAGE = "Por favor, carregue as taxas para todos os NCMs antes de calcular."
ICMS_LIMIT_MESSAGE = "A alíquota de ICMS deve ser menor que 100%."
DEFAULT_ICMS_RATE = Decimal("17")

_HUNDRED = Decimal("100")


class SimulationError(ValueError):
    """Raised when a simulation cannot be calculated."""


def _dec(value: Any) -> Decimal:
    return Decimal(str(value if value not in (None, "") else 0).replace(",", "."))


def _num(value: Decimal) -> float:
    return float(value)


@dataclass(slots=True)
class NcmTaxRates:
    """Federal import tax rates, in percent, for an NCM code."""

    ncm: str
    ii: Decimal
    ipi: Decimal
    pis: Decimal
    cofins: Decimal
    description: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "NcmTaxRates":
        return cls(
            ncm=str(payload.get("ncm", "")),
            ii=_dec(payload.get("ii")),
            ipi=_dec(payload.get("ipi")),
            pis=_dec(payload.get("pis")),
            cofins=_dec(payload.get("cofins")),
            description=str(payload.get("description", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ncm": self.ncm,
            "ii": _num(self.ii),
            "ipi": _num(self.ipi),
            "pis": _num(self.pis),
            "cofins": _num(self.cofins),
            "description": self.description,
        }


@dataclass(slots=True)
class SimulationItem:
    descricao: str
    quantidade: Decimal
    valor_unitario_usd: Decimal
    ncm: str
    peso_kg: Decimal
    tax_rates: Optional[NcmTaxRates] = None

    @property
    def fob(self) -> Decimal:
        return self.quantidade * self.valor_unitario_usd

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SimulationItem":
        rates = payload.get("taxRates")
        return cls(
            descricao=str(payload.get("descricao", "")),
            quantidade=_dec(payload.get("quantidade")),
            valor_unitario_usd=_dec(payload.get("valorUnitarioUSD")),
            ncm=str(payload.get("ncm", "")),
            peso_kg=_dec(payload.get("pesoKg")),
            tax_rates=NcmTaxRates.from_dict(rates) if rates else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "descricao": self.descricao,
            "quantidade": _num(self.quantidade),
            "valorUnitarioUSD": _num(self.valor_unitario_usd),
            "ncm": self.ncm,
            "pesoKg": _num(self.peso_kg),
        }
        if self.tax_rates is not None:
            payload["taxRates"] = self.tax_rates.to_dict()
        return payload


@dataclass(slots=True)
class SimulationInput:
    """Validated simulator form."""

    simulation_name: str
    customer_name: str
    freight_cost_usd: Decimal
    insurance_cost_usd: Decimal
    exchange_rate: Decimal
    thc_value_brl: Decimal
    other_expenses_brl: Decimal
    icms_rate: Decimal = DEFAULT_ICMS_RATE
    itens: List[SimulationItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SimulationInput":
        icms = payload.get("icmsRate")
        return cls(
            simulation_name=str(payload.get("simulationName", "")),
            customer_name=str(payload.get("customerName", "")),
            freight_cost_usd=_dec(payload.get("freightCostUSD")),
            insurance_cost_usd=_dec(payload.get("insuranceCostUSD")),
            exchange_rate=_dec(payload.get("exchangeRate")),
            thc_value_brl=_dec(payload.get("thcValueBRL")),
            other_expenses_brl=_dec(payload.get("otherExpensesBRL")),
            icms_rate=_dec(icms) if icms not in (None, "") else DEFAULT_ICMS_RATE,
            itens=[SimulationItem.from_dict(i) for i in payload.get("itens", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "simulationName": self.simulation_name,
            "customerName": self.customer_name,
            "freightCostUSD": _num(self.freight_cost_usd),
            "insuranceCostUSD": _num(self.insurance_cost_usd),
            "exchangeRate": _num(self.exchange_rate),
            "thcValueBRL": _num(self.thc_value_brl),
            "icmsRate": _num(self.icms_rate),
            "otherExpensesBRL": _num(self.other_expenses_brl),
            "itens": [i.to_dict() for i in self.itens],
        }


@dataclass(slots=True)
class SimulationResultItem:
    item: SimulationItem
    valor_aduaneiro_rateado: Decimal
    impostos_rateados: Decimal
    despesas_locais_rateadas: Decimal
    custo_unitario_final: Decimal

    def to_dict(self) -> Dict[str, Any]:
        payload = self.item.to_dict()
        payload.update(
            {
                "valorAduaneiroRateado": _num(self.valor_aduaneiro_rateado),
                "impostosRateados": _num(self.impostos_rateados),
                "despesasLocaisRateadas": _num(self.despesas_locais_rateadas),
                "custoUnitarioFinal": _num(self.custo_unitario_final),
            }
        )
        return payload


@dataclass(slots=True)
class SimulationResult:
    valor_aduaneiro: Decimal
    total_ii: Decimal
    total_ipi: Decimal
    total_pis: Decimal
    total_cofins: Decimal
    total_icms: Decimal
    custo_total: Decimal
    itens: List[SimulationResultItem]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valorAduaneiro": _num(self.valor_aduaneiro),
            "totalII": _num(self.total_ii),
            "totalIPI": _num(self.total_ipi),
            "totalPIS": _num(self.total_pis),
            "totalCOFINS": _num(self.total_cofins),
            "totalICMS": _num(self.total_icms),
            "custoTotal": _num(self.custo_total),
            "itens": [i.to_dict() for i in self.itens],
        }


def _gross_up_icms(base: Decimal, icms: Decimal) -> Decimal:
    return base / (1 - icms) * icms


def calculate_simulation(data: SimulationInput) -> SimulationResult:
    """Compute per-item landed cost and the declaration totals.

    Args:
        data: Validated simulator form. Every item must carry its NCM tax
            rates (fetched beforehand through the NCM rates flow).

    Returns:
        SimulationResult: Customs value, tax totals, total cost and the
        apportioned values per item, all in BRL.

    Raises:
        SimulationError: When an item has no tax rates, the FOB total is
            zero or the ICMS rate reaches 100%.
    """

    if any(item.tax_rates is None for item in data.itens):
        raise SimulationError(MISSING_RATES_MESSAGE)
    total_fob = sum((item.fob for item in data.itens), Decimal())
    if total_fob <= 0:
        raise SimulationError("O valor FOB total deve ser maior que zero.")

    icms = data.icms_rate / _HUNDRED
    if icms >= 1:
        raise SimulationError(ICMS_LIMIT_MESSAGE)
    valor_aduaneiro = (
        total_fob + data.freight_cost_usd + data.insurance_cost_usd
    ) * data.exchange_rate
    local_expenses = data.thc_value_brl + data.other_expenses_brl

    totals = {"ii": Decimal(), "ipi": Decimal(), "pis": Decimal(), "cofins": Decimal()}
    result_items: List[SimulationResultItem] = []
    for item in data.itens:
        rates = item.tax_rates
        share = item.fob / total_fob
        va_item = valor_aduaneiro * share
        ii = va_item * rates.ii / _HUNDRED
        base = va_item + ii
        ipi = base * rates.ipi / _HUNDRED
        pis = base * rates.pis / _HUNDRED
        cofins = base * rates.cofins / _HUNDRED
        icms_item = _gross_up_icms(base + ipi + pis + cofins, icms)
        taxes = ii + ipi + pis + cofins + icms_item
        expenses = local_expenses * share
        result_items.append(
            SimulationResultItem(
                item=item,
                valor_aduaneiro_rateado=va_item,
                impostos_rateados=taxes,
                despesas_locais_rateadas=expenses,
                custo_unitario_final=(va_item + taxes + expenses) / item.quantidade,
            )
        )
        totals["ii"] += ii
        totals["ipi"] += ipi
        totals["pis"] += pis
        totals["cofins"] += cofins

    federal = totals["ii"] + totals["ipi"] + totals["pis"] + totals["cofins"]
    total_icms = _gross_up_icms(valor_aduaneiro + federal, icms)
    return SimulationResult(
        valor_aduaneiro=valor_aduaneiro,
        total_ii=totals["ii"],
        total_ipi=totals["ipi"],
        total_pis=totals["pis"],
        total_cofins=totals["cofins"],
        total_icms=total_icms,
        custo_total=valor_aduaneiro + federal + total_icms + local_expenses,
        itens=result_items,
    )


def build_simulation_record(
    data: SimulationInput, created_at: Optional[datetime] = None
) -> Dict[str, Any]:
    """Stored form of a saved simulation: ``{id, name, customer, createdAt, data}``."""

    created_at = created_at or datetime.now()
    return {
        "id": f"sim-{int(created_at.timestamp() * 1000)}",
        "name": data.simulation_name,
        "customer": data.customer_name,
        "createdAt": created_at.isoformat(),
        "data": data.to_dict(),
    }


__all__ = [
    "DEFAULT_ICMS_RATE",
    "MISSING_RATES_MESSAGE",
    "NcmTaxRates",
    "SimulationError",
    "SimulationInput",
    "SimulationItem",
    "SimulationResult",
    "SimulationResultItem",
    "build_simulation_record",
    "calculate_simulation",
]
