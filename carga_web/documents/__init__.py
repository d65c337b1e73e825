"""HTML documents (quotes, invoices, HBL, simulations) rendered with Jinja2.

Templates live in ``carga_web/documents/templates`` and are rendered with
autoescaping, so values coming from partners or the client portal are safe to
embed. Money values arrive already formatted unless a filter says otherwise.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from carga_common.shipments import COMPANY_NAME, Shipment

from .declarations import build_di_xml, build_nfse_rps_xml

_env = Environment(
    loader=PackageLoader("carga_web", "documents/templates"),
    autoescape=select_autoescape(["html"]),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
)


def format_brl(value: Any) -> str:
    """``1234.5`` -> ``"1.234,50"`` (pt-BR grouping)."""

    return f"{float(value or 0):,.2f}".translate(str.maketrans(",.", ".,"))


def _money(value: Any, currency: str = "BRL") -> str:
    return f"{currency} {format_brl(value)}"


def _to_brl(total: Any, exchange_rate: Any) -> str:
    return f"{float(str(total).replace(',', '.')) * float(exchange_rate):.2f}"


_env.filters["money"] = _money
_env.filters["to_brl"] = _to_brl


def _render(template: str, context: Mapping[str, Any]) -> str:
    payload = {"company_name": COMPANY_NAME}
    payload.update(context)
    return _env.get_template(template).render(**payload)


def render_quote_html(data: Mapping[str, Any]) -> str:
    """Quote/invoice sheet with BRL conversion per charge.

    ``data`` carries ``invoiceNumber``, ``customerName``, ``customerAddress``,
    ``date``, ``charges`` (``description``, ``quantity``, ``value``,
    ``total``, ``currency``), ``total``, ``exchangeRate``, ``bankDetails``
    and an optional ``approvalLink``.
    """

    context = dict(data)
    context.setdefault("approvalLink", None)
    return _render("quote.html", context)


def render_client_invoice_html(data: Mapping[str, Any]) -> str:
    context = dict(data)
    context.setdefault("exchangeRate", None)
    context.setdefault("companyLogoUrl", None)
    context.setdefault("bankDetails", {"bankName": "", "accountNumber": ""})
    return _render("client_invoice.html", context)


def render_agent_invoice_html(data: Mapping[str, Any]) -> str:
    return _render("agent_invoice.html", data)


def render_hbl_html(data: Mapping[str, Any]) -> str:
    """House bill of lading: a DRAFT watermark unless ``isOriginal`` is set,
    in which case the ORIGINAL stamp and the signature image are added."""

    context = dict(data)
    context.setdefault("signatureUrl", None)
    context.setdefault("companyLogoUrl", None)
    context.setdefault("companyName", COMPANY_NAME)
    context["isOriginal"] = bool(context.get("isOriginal"))
    return _render("hbl.html", context)


def _bl_date(value: Optional[date]) -> str:
    return value.strftime("%d-%b-%Y") if value else ""


def _party(partner: Mapping[str, Any]) -> str:
    address = partner.get("address") or {}
    lines = [str(partner.get("name", ""))]
    street = " ".join(str(address.get(k, "")) for k in ("street", "number")).strip()
    city = ", ".join(str(address[k]) for k in ("city", "state", "country") if address.get(k))
    lines.extend(line for line in (street, city) if line)
    return "\n".join(line for line in lines if line)


def hbl_context(
    shipment: Shipment,
    *,
    is_original: bool = False,
    signature_url: Optional[str] = None,
    company_logo_url: Optional[str] = None,
    issued: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Map a shipment and its client BL draft onto the HBL template fields."""

    draft = shipment.bl_draft_data
    vessel = " / ".join(part for part in (shipment.vessel_name, shipment.voyage_number) if part)
    containers = "\n".join(
        f"{c.number} / {c.seal}" if c.seal else c.number for c in shipment.containers
    )
    return {
        "isOriginal": is_original,
        "blNumber": shipment.house_bill_number or shipment.id,
        "shipper": draft.shipper if draft else _party(shipment.shipper),
        "consignee": draft.consignee if draft else _party(shipment.consignee),
        "notifyParty": draft.notify if draft else "SAME AS CONSIGNEE",
        "vesselAndVoyage": vessel,
        "portOfLoading": shipment.origin,
        "portOfDischarge": shipment.destination,
        "finalDestination": shipment.destination,
        "marksAndNumbers": draft.marks_and_numbers if draft else "",
        "packageDescription": draft.description_of_goods if draft else "",
        "grossWeight": draft.gross_weight if draft else "",
        "measurement": draft.measurement if draft else "",
        "containerAndSeal": containers,
        "freightPayableAt": shipment.destination if shipment.is_import else shipment.origin,
        "numberOfOriginals": "3 (THREE)" if shipment.bl_type == "original" else "0 (ZERO)",
        "issueDate": _bl_date(issued or datetime.now()),
        "shippedOnBoardDate": _bl_date(shipment.etd),
        "signatureUrl": signature_url,
        "companyLogoUrl": company_logo_url,
        "companyName": COMPANY_NAME,
    }


def render_simulation_html(
    simulation_name: str, customer_name: str, created_at: str, result: Mapping[str, Any]
) -> str:
    total_taxes = sum(
        float(result.get(key, 0))
        for key in ("totalII", "totalIPI", "totalPIS", "totalCOFINS", "totalICMS")
    )
    return _render(
        "simulation.html",
        {
            "simulationName": simulation_name,
            "customerName": customer_name,
            "createdAt": created_at,
            "result": result,
            "total_taxes": total_taxes,
        },
    )


__all__ = [
    "build_di_xml",
    "build_nfse_rps_xml",
    "format_brl",
    "hbl_context",
    "render_agent_invoice_html",
    "render_client_invoice_html",
    "render_hbl_html",
    "render_quote_html",
    "render_simulation_html",
]
