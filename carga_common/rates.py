"""Freight rate table, carrier registry and quote seeds."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .dates import parse_br_date

QUOTE_STATUSES = ("Enviada", "Aprovada", "Perdida", "Rascunho")
RATE_MODALS = ("Marítimo", "Aéreo")
CARRIER_SHIPMENT_TYPE = "INTERMODAL_SHIPMENT"


@dataclass(slots=True)
class Rate:
    """Negotiated freight rate for a lane, carrier and equipment."""

    id: int
    origin: str
    destination: str
    carrier: str
    modal: str
    rate: str
    container: str
    transit_time: str
    validity: str
    free_time: str
    agent: str = "Direct"

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Rate":
        return cls(
            id=int(payload["id"]),
            origin=str(payload.get("origin", "")),
            destination=str(payload.get("destination", "")),
            carrier=str(payload.get("carrier", "")),
            modal=str(payload.get("modal", "Marítimo")),
            rate=str(payload.get("rate", "")),
            container=str(payload.get("container", "")),
            transit_time=str(payload.get("transitTime", "")),
            validity=str(payload.get("validity", "")),
            free_time=str(payload.get("freeTime", "")),
            agent=str(payload.get("agent", "Direct")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "origin": self.origin,
            "destination": self.destination,
            "carrier": self.carrier,
            "modal": self.modal,
            "rate": self.rate,
            "container": self.container,
            "transitTime": self.transit_time,
            "validity": self.validity,
            "freeTime": self.free_time,
            "agent": self.agent,
        }


def is_expired(rate: Rate, today: Optional[date] = None) -> bool:
    """True once the ``dd/mm/yyyy`` validity date has passed.

    Rates with an unreadable validity are treated as expired.
    """

    validity = parse_br_date(rate.validity)
    if validity is None:
        return True
    return validity < (today or date.today())


def search_rates(
    rates: Iterable[Rate], origin: str = "", destination: str = "", modal: Optional[str] = None
) -> List[Rate]:
    """Case-insensitive substring search on the lane."""

    origin, destination = origin.lower(), destination.lower()
    return [
        rate
        for rate in rates
        if origin in rate.origin.lower()
        and destination in rate.destination.lower()
        and (modal is None or rate.modal == modal)
    ]


def next_rate_id(rates: Iterable[Rate]) -> int:
    return max((r.id for r in rates), default=0) + 1


def _ocean(rid, origin, destination, carrier, rate, container, transit, validity, free, agent="Direct"):
    return Rate(rid, f"Porto de {origin}", f"Porto de {destination}", carrier, "Marítimo",
                rate, container, transit, validity, free, agent).to_dict()


def _air(rid, origin, destination, carrier, rate, transit, validity, agent="Direct"):
    return Rate(rid, origin, destination, carrier, "Aéreo", rate, "N/A", transit, validity,
                "N/A", agent).to_dict()


_GLA = "Global Logistics Agents"


def initial_rates() -> List[Dict[str, Any]]:
    return [
        _ocean(1, "Santos, BR", "Roterdã, NL", "Maersk Line", "2500", "20'GP", "25-30 dias", "31/12/2024", "14"),
        _ocean(2, "Santos, BR", "Roterdã, NL", "Maersk Line", "4100", "40'GP", "25-30 dias", "31/12/2024", "14"),
        _ocean(3, "Santos, BR", "Roterdã, NL", "Maersk Line", "4500", "40'HC", "25-30 dias", "31/12/2024", "14"),
        _ocean(8, "Santos, BR", "Roterdã, NL", "MSC", "2400", "20'GP", "26-31 dias", "31/05/2024", "10"),
        _ocean(10, "Santos, BR", "Roterdã, NL", "MSC", "4000", "40'HC", "26-31 dias", "31/05/2024", "10"),
        _ocean(6, "Itajaí, BR", "Hamburgo, DE", "Hapag-Lloyd", "2650", "20'GP", "28-32 dias", "30/11/2024", "21", _GLA),
        _ocean(7, "Itajaí, BR", "Hamburgo, DE", "Hapag-Lloyd", "4300", "40'HC", "28-32 dias", "30/11/2024", "21", _GLA),
        _ocean(5, "Paranaguá, BR", "Xangai, CN", "CMA CGM", "3800", "40'HC", "35-40 dias", "31/12/2024", "7"),
        _ocean(11, "Paranaguá, BR", "Xangai, CN", "CMA CGM", "2100", "20'GP", "35-40 dias", "31/12/2024", "7"),
        _air(4, "Aeroporto de Guarulhos, BR", "Aeroporto JFK, US", "LATAM Cargo", "4.50 / kg", "1-2 dias", "30/11/2024"),
        _air(9, "Aeroporto de Viracopos, BR", "Aeroporto de Frankfurt, DE", "Lufthansa Cargo", "3.80 / kg", "1-2 dias", "15/12/2024", _GLA),
        _air(12, "Aeroporto de Guarulhos, BR", "Aeroporto de Miami, US", "American Airlines Cargo", "4.20 / kg", "1 dia", "31/10/2024"),
        _ocean(13, "Qingdao, CN", "Santos, BR", "HMM", "6013", "20'GP", "38-42 dias", "31/12/2024", "14", _GLA),
        _ocean(14, "Qingdao, CN", "Santos, BR", "HMM", "6226", "40'GP", "38-42 dias", "31/12/2024", "14", _GLA),
        _ocean(15, "Qingdao, CN", "Santos, BR", "HMM", "6226", "40'HC", "38-42 dias", "31/12/2024", "14", _GLA),
        _ocean(16, "Shenzhen, CN", "Itajaí, BR", "HMM", "5226", "40'NOR", "37-41 dias", "30/11/2024", "18", _GLA),
        _ocean(17, "Xangai, CN", "Paranaguá, BR", "COSCO", "6400", "40'HC", "35-40 dias", "31/12/2024", "21"),
        _ocean(18, "Itapoá, BR", "Antuérpia, BE", "ONE", "2750", "20'GP", "22-26 dias", "31/10/2024", "21"),
        _ocean(19, "Itapoá, BR", "Antuérpia, BE", "ONE", "4600", "40'HC", "22-26 dias", "31/10/2024", "21"),
    ]


def _charge(cid, name, kind, cost, cost_currency, sale, sale_currency, supplier, sacado):
    return {
        "id": cid,
        "name": name,
        "type": kind,
        "cost": cost,
        "costCurrency": cost_currency,
        "sale": sale,
        "saleCurrency": sale_currency,
        "supplier": supplier,
        "sacado": sacado,
        "approvalStatus": "aprovada",
    }


def _quote(qid, customer, origin, destination, status, issued, cargo, transit, validity, free, incoterm, charges=()):
    return {
        "id": qid,
        "customer": customer,
        "origin": origin,
        "destination": destination,
        "status": status,
        "date": issued,
        "details": {
            "cargo": cargo,
            "transitTime": transit,
            "validity": validity,
            "freeTime": free,
            "incoterm": incoterm,
        },
        "charges": list(charges),
    }


def initial_quotes() -> List[Dict[str, Any]]:
    nexus, techfront = "Nexus Imports", "TechFront Solutions"
    return [
        _quote("COT-01832", nexus, "Santos, BR", "Roterdã, NL", "Enviada", "15/07/2024",
               "1x20GP", "25-30 dias", "31/12/2024", "14 dias", "FOB", [
                   _charge("charge-1", "FRETE MARÍTIMO", "Contêiner", 2500, "USD", 2800, "USD", "Maersk Line", nexus),
                   _charge("charge-2", "THC", "Contêiner", 1350, "BRL", 1350, "BRL", "Porto de Roterdã", nexus),
                   _charge("charge-3", "BL FEE", "BL", 500, "BRL", 600, "BRL", "CargaInteligente", nexus),
                   _charge("charge-4", "DESPACHO ADUANEIRO", "Processo", 800, "BRL", 1000, "BRL", "CargaInteligente", nexus),
               ]),
        _quote("COT-00124", techfront, "Guarulhos, BR", "Miami, US", "Aprovada", "14/07/2024",
               "500kg", "1 dia", "31/10/2024", "N/A", "FCA", [
                   _charge("charge-5", "FRETE AÉREO", "KG", 2100, "USD", 2250, "USD", "American Airlines Cargo", techfront),
                   _charge("charge-6", "HANDLING FEE", "AWB", 50, "USD", 60, "USD", "Aeroporto MIA", techfront),
               ]),
        _quote("COT-00123", "Global Foods Ltda", "Paranaguá, BR", "Xangai, CN", "Perdida", "12/07/2024",
               "1x40HC", "35-40 dias", "31/12/2024", "7 dias", "CFR"),
        _quote("COT-00122", nexus, "Itajaí, BR", "Hamburgo, DE", "Rascunho", "11/07/2024",
               "1x20GP", "28-32 dias", "30/11/2024", "21 dias", "FOB"),
        _quote("COT-00121", "AutoParts Express", "Guarulhos, BR", "JFK, US", "Enviada", "10/07/2024",
               "100kg", "1-2 dias", "30/11/2024", "N/A", "CPT"),
    ]


@dataclass(frozen=True, slots=True)
class Carrier:
    name: str
    scac: Optional[str]
    aliases: tuple = ()
    type: str = CARRIER_SHIPMENT_TYPE

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "scac": self.scac, "type": self.type}
        if self.aliases:
            payload["aliases"] = list(self.aliases)
        return payload


# Carrier list as published by the Cargo-flows carrier catalogue.
_CARRIER_ROWS = (
    ("ACL", "ACLU", ()),
    ("Admiral", "ADMU", ()),
    ("Alianca", "ANRM", ()),
    ("AllCargo", "ALPJ", ()),
    ("ANL", "ANNU", ()),
    ("APL", "APLU", ()),
    ("Arkas", "ARKU", ()),
    ("Asyad Line", "ASLU", ()),
    ("Avana", "BLJU", ()),
    ("Bayline", "BLLU", ()),
    ("BDP International", None, ()),
    ("BLPL Singapore", "BLZU", ()),
    ("Blue Water Lines", "BWLU", ()),
    ("Blue World Lines", "BWLE", ()),
    ("CaroTrans", "CROS", ()),
    ("CMA CGM", "CMDU", ("CMA-CGM",)),
    ("CNC", "11DX", ()),
    ("Containerships", "CSHP", ()),
    ("COSCO", "COSU", ()),
    ("Cosiarma", "CRAU", ()),
    ("Crowley", "CMCU", ()),
    ("CTL", "CHKM", ()),
    ("CU Lines", "CULU", ()),
    ("Danmar Lines", "DMLB", ()),
    ("Diamond Line", None, ()),
    ("Diamond Shipping", "DLDS", ()),
    ("DSV", "DSVF", ()),
    ("Econship", "ECNU", ()),
    ("ECU", "ECUI", ()),
    ("Eimskip", "EIMU", ()),
    ("Ellerman Lines", "ECLU", ()),
    ("Emirates Line", "ESPU", ()),
    ("Evergreen", "EGLV", ()),
    ("Fesco", "FESO", ()),
    ("Gold Star", "GSLU", ()),
    ("GoodRich Maritime", "GRXU", ()),
    ("Grimaldi", "GRIU", ()),
    ("Hamburg Sud", "SUDU", ()),
    ("Hapag Lloyd", "HLCU", ("Hapag-Lloyd",)),
    ("Heung-A", "HLHU", ()),
    ("HMM", "HDMU", ()),
    ("Interasia", "12AT", ()),
    ("JAS", "JASO", ()),
    ("KMTC", "KMTU", ()),
    ("Lynden", "LTIA", ()),
    ("MacAndrews", "MCAW", ()),
    ("Maersk", "MAEU", ("Maersk Line",)),
    ("MainFreight", "MFGT", ()),
    ("Marfret", "MFUS", ()),
    ("Mariana Express Lines", "MEXU", ()),
    ("Marmedsa", None, ()),
    ("Matson", "MATS", ()),
    ("Maxicon", "MXCU", ()),
    ("Medkon Lines", "MKLU", ()),
    ("Messina", "LMCU", ()),
    ("Milaha", "MLHA", ()),
    ("Modul", "MODU", ()),
    ("MSC", "MSCU", ()),
    ("Namsung", "NSRU", ()),
    ("Nirint", "32GH", ()),
    ("NTES", None, ()),
    ("Nvogo", None, ()),
    ("NYK", "NYKS", ()),
    ("ONE", "ONEY", ()),
    ("OOCL", "OOLU", ()),
    ("Ovinto", None, ()),
    ("Pan Continental", "PCLU", ()),
    ("PanOcean", "POBU", ()),
    ("Penanshin", "PSQJ", ()),
    ("Perma", "PMLU", ()),
    ("PIL", "PCIU", ()),
    ("PSL", "PSL1", ()),
    ("Qatar Navigation Line", "QNLU", ()),
    ("RCL", "REGU", ()),
    ("Reel", None, ()),
    ("SACO Shipping Line", "SSLL", ()),
    ("SafeTrans", None, ()),
    ("Safmarine", "SAFM", ()),
    ("SailGP", "SAIL", ()),
    ("Samsara", "ESLU", ()),
    ("Samudera", "SIKU", ()),
    ("SCI", "SCIU", ()),
    ("Seaboard Marine", "SMLU", ()),
    ("Sealand", "SEAU", ()),
    ("SeaLead", "SJHH", ()),
    ("Sea Legend", "SEHP", ()),
    ("Seatrade", "SGNV", ()),
    ("Seth Shipping", "SSPH", ()),
    ("ShalAsia", "SHKU", ()),
    ("Shipco", "SHPT", ()),
    ("Sidra Line", None, ()),
    ("Sinokor", "SKLU", ()),
    ("Sinotrans", "12IH", ()),
    ("SITC", "SITU", ()),
    ("SM Lines", "SMLM", ()),
    ("SPIL", "SPNU", ()),
    ("Sunmarine", "BAXU", ()),
    ("Swire Shipping", "CHVW", ()),
    ("Tailwind Shipping", "TAWU", ()),
    ("Tarros", "GETU", ()),
    ("TOTE", "TOTE", ()),
    ("Trailer Bridge", "TRBR", ()),
    ("Trans Asia", "TLXU", ()),
    ("Transmar", "TSMA", ()),
    ("Transmarine", None, ()),
    ("Total Transport", "TSYH", ()),
    ("TROPICAL", "TSGL", ()),
    ("TS Lines", "13DF", ()),
    ("Turkon", "TRKU", ()),
    ("UGL", None, ()),
    ("Unifeeder", "UFEE", ()),
    ("Vanguard", "VLSV", ()),
    ("Vasi Shipping", "VASU", ()),
    ("Volta Shipping", "VCLU", ()),
    ("Wan Hai", "WHLC", ()),
    ("WEC", "WECU", ()),
    ("Westwood", "WWSU", ()),
    ("Yang Ming", "YMLU", ()),
    ("ZIM", "ZIMU", ()),
)

CARRIERS = tuple(Carrier(name, scac, aliases) for name, scac, aliases in _CARRIER_ROWS)


def get_carrier_by_scac(scac: str) -> Optional[Carrier]:
    code = (scac or "").upper()
    for carrier in CARRIERS:
        if carrier.scac == code:
            return carrier
    return None


def find_carrier_by_name(name: str) -> Optional[Carrier]:
    """Match a carrier by exact name, alias or SCAC, ignoring case."""

    if not name:
        return None
    needle = name.strip().lower()
    for carrier in CARRIERS:
        if carrier.name.lower() == needle:
            return carrier
        if any(alias.lower() == needle for alias in carrier.aliases):
            return carrier
        if carrier.scac and carrier.scac.lower() == needle:
            return carrier
    return None


__all__ = [
    "CARRIERS",
    "CARRIER_SHIPMENT_TYPE",
    "Carrier",
    "QUOTE_STATUSES",
    "RATE_MODALS",
    "Rate",
    "find_carrier_by_name",
    "get_carrier_by_scac",
    "initial_quotes",
    "initial_rates",
    "is_expired",
    "next_rate_id",
    "search_rates",
]
