"""POST endpoints exposing the server actions.

Every endpoint answers with the action payload: 200 when ``success`` is true,
400 otherwise. Endpoints backed by the language model share the
``FLOW_RATE_LIMIT`` budget.
"""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, Response, abort, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from carga_common.dates import parse_date

from .. import actions, get_repository, limiter
from ..actions import ActionResult
from ..forms import parse_freight_quote_form

actions_bp = Blueprint("actions", __name__, url_prefix="/api/actions")


def _flow_rate_limit() -> str:
    """Return the rate limit applied to model-backed endpoints."""

    value = current_app.config.get("FLOW_RATE_LIMIT", "30 per minute")
    return str(value or "30 per minute")


flow_limit = limiter.limit(_flow_rate_limit)


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _respond(result: ActionResult) -> tuple[Response, int]:
    return jsonify(result), 200 if result.get("success") else 400


def _required(payload: Dict[str, Any], *keys: str) -> None:
    missing = [key for key in keys if payload.get(key) in (None, "", [], {})]
    if missing:
        abort(400, description=f"Campos obrigatórios ausentes: {', '.join(missing)}")


@actions_bp.errorhandler(400)
def bad_request(exc: HTTPException) -> tuple[Response, int]:
    return jsonify({"success": False, "error": exc.description}), 400


# Quoting


@actions_bp.post("/freight-rates")
def freight_rates() -> tuple[Response, int]:
    """Search ocean or air rates for every origin and destination pair."""

    form, errors = parse_freight_quote_form(_payload())
    if errors or form is None:
        return jsonify({"success": False, "errors": errors}), 400
    return _respond(actions.run_get_freight_rates(form))


@actions_bp.post("/courier-rates")
def courier_rates() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "customerId", "pieces")
    customer = next(
        (p for p in get_repository().partners() if str(p.id) == str(payload["customerId"])),
        None,
    )
    if customer is None:
        abort(404)
    return _respond(actions.run_get_courier_rates(customer, payload["pieces"]))


@actions_bp.post("/agent-quote")
@flow_limit
def agent_quote() -> tuple[Response, int]:
    """Ask every registered agent for a rate on the requested route."""

    form, errors = parse_freight_quote_form(_payload())
    if errors or form is None:
        return jsonify({"success": False, "errors": errors}), 400
    return _respond(actions.run_request_agent_quote(form, get_repository().partners()))


@actions_bp.post("/send-quote")
@flow_limit
def send_quote() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "customerName", "quoteId", "rateDetails")
    return _respond(actions.run_send_quote(payload))


@actions_bp.post("/extract-rates")
@flow_limit
def extract_rates() -> tuple[Response, int]:
    payload = _payload()
    return _respond(
        actions.run_extract_rates(
            payload.get("text"), payload.get("fileDataUri"), payload.get("fileName")
        )
    )


@actions_bp.post("/extract-quote-details")
@flow_limit
def extract_quote_details() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "text")
    return _respond(actions.run_extract_quote_details(payload["text"]))


# CRM and communication


@actions_bp.post("/extract-partner")
@flow_limit
def extract_partner() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "text")
    return _respond(actions.run_extract_partner_info(payload["text"]))


@actions_bp.post("/crm-entry")
@flow_limit
def crm_entry() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "emailContent")
    return _respond(actions.run_create_crm_entry(payload["emailContent"]))


@actions_bp.post("/monitor-tasks")
@flow_limit
def monitor_tasks() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "emailContent")
    return _respond(
        actions.run_monitor_tasks(
            payload["emailContent"], payload.get("emailSubject", ""), payload.get("sender", "")
        )
    )


@actions_bp.post("/whatsapp")
def whatsapp() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "to", "message")
    return _respond(actions.run_send_whatsapp(payload["to"], payload["message"]))


@actions_bp.post("/email")
def email() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "to", "subject", "body")
    return _respond(
        actions.run_send_email(
            payload["to"],
            payload["subject"],
            payload["body"],
            feature=payload.get("feature", "general"),
            requested_by=payload.get("requestedBy"),
        )
    )


@actions_bp.post("/email-campaign")
@flow_limit
def email_campaign() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "instruction")
    return _respond(actions.run_create_email_campaign(payload["instruction"], get_repository()))


@actions_bp.post("/shipping-instructions")
@flow_limit
def shipping_instructions() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "agentName", "agentEmail")
    return _respond(actions.run_send_shipping_instructions(payload))


@actions_bp.post("/draft-approval")
@flow_limit
def draft_approval() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "customerName", "shipmentId", "deadline", "hblPreviewLink")
    return _respond(actions.run_send_draft_approval_request(payload))


@actions_bp.post("/share-simulation")
@flow_limit
def share_simulation() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "customerName", "simulationName", "totalCostBRL", "simulationLink")
    return _respond(actions.run_share_simulation(payload))


# Tracking


@actions_bp.post("/tracking-info")
def tracking_info() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "trackingNumber")
    return _respond(actions.run_get_tracking_info(payload["trackingNumber"]))


@actions_bp.post("/detect-carrier")
@flow_limit
def detect_carrier() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "trackingNumber")
    return _respond(actions.run_detect_carrier(payload["trackingNumber"]))


@actions_bp.post("/courier-status")
@flow_limit
def courier_status() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "courier", "trackingNumber")
    return _respond(actions.run_get_courier_status(payload["courier"], payload["trackingNumber"]))


@actions_bp.post("/schedules/<kind>")
def schedules(kind: str) -> tuple[Response, int]:
    """Vessel or flight schedules for a route."""

    payload = _payload()
    _required(payload, "origin", "destination")
    if kind == "vessel":
        result = actions.run_get_vessel_schedules(payload["origin"], payload["destination"])
    elif kind == "flight":
        result = actions.run_get_flight_schedules(payload["origin"], payload["destination"])
    else:
        abort(404)
    return _respond(result)


@actions_bp.post("/shipments/<shipment_id>/booking")
def refresh_booking(shipment_id: str) -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "bookingNumber", "carrier")
    return _respond(
        actions.run_refresh_booking(
            get_repository(), shipment_id, payload["bookingNumber"], payload["carrier"]
        )
    )


# Financial and legal


@actions_bp.post("/demurrage-invoice-email")
@flow_limit
def demurrage_invoice_email() -> tuple[Response, int]:
    payload = _payload()
    _required(
        payload,
        "customerName",
        "invoiceId",
        "processId",
        "containerNumber",
        "dueDate",
        "totalAmountUSD",
        "exchangeRate",
    )
    return _respond(actions.run_send_demurrage_invoice(payload))


@actions_bp.post("/legal-email")
@flow_limit
def legal_email() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "lawyerName", "customerName", "invoiceId", "processId", "invoiceAmount")
    return _respond(actions.run_send_to_legal(payload))


@actions_bp.post("/nfse/consult")
def nfse_consult() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "cnpj", "startDate", "endDate")
    start = parse_date(payload["startDate"])
    end = parse_date(payload["endDate"])
    if start is None or end is None:
        abort(400, description="Datas inválidas.")
    return _respond(
        actions.run_consult_nfse(payload["cnpj"], start, end, int(payload.get("page") or 1))
    )


@actions_bp.post("/nfse/xml")
def nfse_xml() -> tuple[Response, int]:
    return _respond(actions.run_generate_nfse_xml(_payload()))


# Customs


@actions_bp.post("/di/xml")
def di_xml() -> tuple[Response, int]:
    return _respond(actions.run_generate_di_xml(_payload()))


@actions_bp.post("/di/xml-from-spreadsheet")
@flow_limit
def di_xml_from_spreadsheet() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "items", "shipment")
    return _respond(
        actions.run_generate_di_xml_from_spreadsheet(payload["items"], payload["shipment"])
    )


@actions_bp.post("/ncm-rates")
@flow_limit
def ncm_rates() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "ncm")
    return _respond(actions.run_get_ncm_rates(str(payload["ncm"])))


@actions_bp.post("/invoice-items")
@flow_limit
def invoice_items() -> tuple[Response, int]:
    payload = _payload()
    _required(payload, "fileDataUri")
    return _respond(
        actions.run_extract_invoice_items(payload["fileDataUri"], payload.get("fileName"))
    )


@actions_bp.post("/siscomex/<declaration>")
def siscomex(declaration: str) -> tuple[Response, int]:
    """Register a DUE (export) or DUIMP (import) declaration."""

    if declaration == "due":
        return _respond(actions.run_register_due(_payload()))
    if declaration == "duimp":
        return _respond(actions.run_register_duimp(_payload()))
    abort(404)


# Documents


@actions_bp.post("/documents/<kind>")
def render_document(kind: str) -> tuple[Response, int]:
    """Render a quote, client invoice or agent invoice to HTML."""

    renderers = {
        "quote": actions.run_generate_quote_html,
        "client-invoice": actions.run_generate_client_invoice_html,
        "agent-invoice": actions.run_generate_agent_invoice_html,
    }
    if kind not in renderers:
        abort(404)
    return _respond(renderers[kind](_payload()))


__all__ = ["actions_bp"]
