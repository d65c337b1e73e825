"""Server actions invoked by the JSON endpoints.

Each ``run_*`` helper wraps one flow or integration call and normalises the
outcome into ``{"success": True, "data": ...}`` or
``{"success": False, "error": message}`` so the blueprints never see raw
exceptions. Credentials come from ``current_app.config``; persisted records
come from the :class:`~carga_web.repositories.CollectionRepository` passed in.
"""

from __future__ import annotations

import functools
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import NoResultFound

from carga_common.partners import Partner, agents
from carga_common.shipments import BLDraftData, apply_agent_update, apply_bl_draft
from carga_common.simulation import SimulationInput, calculate_simulation

from . import documents
from .flows import extraction, messaging
from .flows.llm import ChatModel
from .integrations.carriers import MaerskClient, get_booking_info, get_tracking_info
from .integrations.freight_rates import get_air_freight_rates, get_freight_rates
from .integrations.nfse import NfseClient
from .integrations.schedules import ScheduleClient
from .integrations.shipengine import ShipEngineClient
from .integrations.siscomex import SiscomexClient
from .integrations.twilio import TwilioWhatsAppClient
from .repositories import CollectionRepository
from .services.mail import send_email

ActionResult = Dict[str, Any]

DRAFT_NOT_FOUND = "Embarque não encontrado. Verifique o link ou contate o suporte."
DRAFT_UNEXPECTED = "Ocorreu um erro inesperado ao buscar os dados do embarque."
SHIPMENT_NOT_FOUND = "Embarque não encontrado."
NO_AGENTS = "Nenhum agente cadastrado."


def _failure(exc: Exception, fallback: str) -> ActionResult:
    current_app.logger.exception("%s", fallback)
    return {"success": False, "error": str(exc) or fallback}


def action(fallback: str = "Failed to run flow") -> Callable[[Callable[..., Any]], Callable[..., ActionResult]]:
    """Wrap ``func`` so its return value becomes ``{"success": True, "data": ...}``.

    Any exception is logged with its traceback and turned into an error
    payload carrying the exception message, or ``fallback`` when the message
    is empty.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., ActionResult]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> ActionResult:
            try:
                data = func(*args, **kwargs)
            except Exception as exc:
                return _failure(exc, fallback)
            return {"success": True, "data": data}

        return wrapper

    return decorator


def _schedule_client() -> ScheduleClient:
    config = current_app.config
    return ScheduleClient(config.get("CARGOFLOWS_API_KEY"), config.get("CARGOFLOWS_ORG_TOKEN"))


def _twilio_client() -> TwilioWhatsAppClient:
    config = current_app.config
    return TwilioWhatsAppClient(
        config.get("TWILIO_ACCOUNT_SID"),
        config.get("TWILIO_AUTH_TOKEN"),
        config.get("TWILIO_PHONE_NUMBER"),
    )


# Quoting ------------------------------------------------------------------


@action()
def run_get_freight_rates(form: Mapping[str, Any]) -> List[Dict[str, Any]]:
    if form.get("modal") == "air":
        return get_air_freight_rates(form)
    return get_freight_rates(form)


@action()
def run_get_courier_rates(customer: Partner, pieces: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    client = ShipEngineClient(current_app.config.get("SHIPENGINE_API_KEY"))
    return client.get_courier_rates(customer, pieces)


def response_links(record_id: str, is_invoice: bool = False) -> Dict[str, str]:
    """Customer approval and rejection URLs under ``CARGA_PUBLIC_BASE_URL``.

    Quotes get ``/approve/<id>`` and ``/reject/<id>``; invoices get
    ``/pay/<id>`` and ``/dispute/<id>``.
    """

    base = current_app.config["CARGA_PUBLIC_BASE_URL"].rstrip("/")
    accept, decline = ("pay", "dispute") if is_invoice else ("approve", "reject")
    return {
        "approvalLink": f"{base}/{accept}/{record_id}",
        "rejectionLink": f"{base}/{decline}/{record_id}",
    }


@action()
def run_send_quote(data: Mapping[str, Any], llm: Optional[ChatModel] = None) -> Dict[str, str]:
    links = response_links(data["quoteId"], bool(data.get("isInvoice")))
    return messaging.send_quote(
        data["customerName"],
        data["quoteId"],
        data["rateDetails"],
        data.get("approvalLink") or links["approvalLink"],
        data.get("rejectionLink") or links["rejectionLink"],
        is_client_agent=bool(data.get("isClientAgent")),
        is_invoice=bool(data.get("isInvoice")),
        llm=llm,
    )


@action("Failed to extract rates")
def run_extract_rates(
    text: Optional[str] = None,
    file_data_uri: Optional[str] = None,
    file_name: Optional[str] = None,
    llm: Optional[ChatModel] = None,
) -> List[Dict[str, Any]]:
    return extraction.extract_rates(text, file_data_uri, file_name, llm)


@action("Failed to extract details")
def run_extract_quote_details(text: str, llm: Optional[ChatModel] = None) -> Dict[str, Any]:
    return extraction.extract_quote_details(text, llm)


def run_request_agent_quote(
    form: Mapping[str, Any],
    partners: Iterable[Partner],
    llm: Optional[ChatModel] = None,
) -> ActionResult:
    """Email every registered agent asking for a rate on ``form``'s route.

    The message goes to each agent's first contact; the payload lists the
    agents that were contacted.
    """

    try:
        registered = agents(partners)
        if not registered:
            return {"success": False, "error": NO_AGENTS}
        contacted = []
        for agent in registered:
            contact = agent.contacts[0] if agent.contacts else None
            if contact is None or not contact.email:
                current_app.logger.warning("Agent %s has no contact email", agent.name)
                continue
            content = messaging.request_agent_quote(form, llm)
            current_app.logger.info(
                "Quote request for %s <%s>: %s", agent.name, contact.email, content["emailSubject"]
            )
            contacted.append({"name": agent.name, "email": contact.email, **content})
        return {"success": True, "agentsContacted": contacted}
    except Exception as exc:
        return _failure(exc, "Failed to run flow")


# CRM and communication ----------------------------------------------------


@action()
def run_extract_partner_info(text: str, llm: Optional[ChatModel] = None) -> Dict[str, Any]:
    return extraction.extract_partner_info(text, llm)


@action("Failed to create CRM entry")
def run_create_crm_entry(email_content: str, llm: Optional[ChatModel] = None) -> Dict[str, Any]:
    return extraction.create_crm_entry(email_content, llm)


@action("Failed to monitor tasks")
def run_monitor_tasks(
    content: str, subject: str, sender: str, llm: Optional[ChatModel] = None
) -> Dict[str, Any]:
    return extraction.monitor_email_for_tasks(content, subject, sender, llm)


@action("Failed to send WhatsApp message")
def run_send_whatsapp(to: str, message: str) -> Dict[str, str]:
    return _twilio_client().send_message(to, message)


@action("Failed to send email")
def run_send_email(
    to: str,
    subject: str,
    body: str,
    *,
    feature: str = "general",
    requested_by: Optional[str] = None,
) -> Dict[str, str]:
    send_email(to, subject, body, feature=feature, requested_by=requested_by, html=True)
    return {"to": to, "subject": subject}


@action("Failed to create email campaign")
def run_create_email_campaign(
    instruction: str, repo: CollectionRepository, llm: Optional[ChatModel] = None
) -> Dict[str, Any]:
    return messaging.create_email_campaign(
        instruction, repo.get("shipments"), repo.get("quotes"), llm
    )


@action()
def run_send_shipping_instructions(data: Mapping[str, Any], llm: Optional[ChatModel] = None) -> Dict[str, str]:
    return messaging.send_shipping_instructions(data, llm)


@action()
def run_send_draft_approval_request(data: Mapping[str, Any], llm: Optional[ChatModel] = None) -> Dict[str, str]:
    return messaging.send_draft_approval_request(
        data["customerName"], data["shipmentId"], data["deadline"], data["hblPreviewLink"], llm
    )


@action()
def run_share_simulation(data: Mapping[str, Any], llm: Optional[ChatModel] = None) -> Dict[str, str]:
    return messaging.share_simulation(
        data["customerName"],
        data["simulationName"],
        float(data["totalCostBRL"]),
        data["simulationLink"],
        llm,
    )


# Tracking -----------------------------------------------------------------


@action()
def run_get_tracking_info(tracking_number: str) -> Dict[str, Any]:
    return get_tracking_info(tracking_number)


@action("Failed to detect carrier")
def run_detect_carrier(tracking_number: str, llm: Optional[ChatModel] = None) -> Dict[str, str]:
    return extraction.detect_carrier(tracking_number, llm)


@action("Failed to fetch courier status")
def run_get_courier_status(
    courier: str, tracking_number: str, llm: Optional[ChatModel] = None
) -> Dict[str, Any]:
    return extraction.get_courier_status(courier, tracking_number, llm)


@action("Failed to get schedules")
def run_get_vessel_schedules(origin: str, destination: str) -> List[Dict[str, Any]]:
    return _schedule_client().vessel_schedules(origin, destination)


@action("Failed to get schedules")
def run_get_flight_schedules(origin: str, destination: str) -> List[Dict[str, Any]]:
    return _schedule_client().flight_schedules(origin, destination)


@action("Failed to fetch booking info")
def run_refresh_booking(
    repo: CollectionRepository, shipment_id: str, booking_number: str, carrier: str
) -> Dict[str, Any]:
    """Merge the carrier's booking data into a stored shipment."""

    shipment = repo.get_shipment(shipment_id)
    maersk = MaerskClient(current_app.config.get("MAERSK_API_KEY"))
    updated = get_booking_info(booking_number, carrier, shipment, maersk=maersk)
    return repo.update_shipment(updated).to_dict()


# Financial and legal ------------------------------------------------------


@action("Failed to send demurrage invoice")
def run_send_demurrage_invoice(data: Mapping[str, Any], llm: Optional[ChatModel] = None) -> Dict[str, str]:
    return messaging.send_demurrage_invoice(
        data["customerName"],
        data["invoiceId"],
        data["processId"],
        data["containerNumber"],
        data["dueDate"],
        str(data["totalAmountUSD"]),
        str(data["exchangeRate"]),
        llm,
    )


@action("Failed to send to legal")
def run_send_to_legal(data: Mapping[str, Any], llm: Optional[ChatModel] = None) -> Dict[str, str]:
    return messaging.send_to_legal(
        data["lawyerName"],
        data["customerName"],
        data["invoiceId"],
        data["processId"],
        str(data["invoiceAmount"]),
        data.get("comments", ""),
        llm,
    )


@action("Failed to consult NFS-e")
def run_consult_nfse(cnpj: str, start: date, end: date, page: int = 1) -> Dict[str, Any]:
    return NfseClient().consult_received(cnpj, start, end, page)


@action("Failed to generate XML")
def run_generate_nfse_xml(data: Mapping[str, Any]) -> Dict[str, str]:
    return {"xml": documents.build_nfse_rps_xml(data)}


# Customs ------------------------------------------------------------------


@action("Failed to generate XML")
def run_generate_di_xml(data: Mapping[str, Any]) -> Dict[str, str]:
    return {"xml": documents.build_di_xml(data)}


@action("Failed to generate XML")
def run_generate_di_xml_from_spreadsheet(
    items: List[Mapping[str, Any]], shipment: Mapping[str, Any], llm: Optional[ChatModel] = None
) -> Dict[str, str]:
    return extraction.generate_di_xml_from_spreadsheet(items, shipment, llm)


@action()
def run_get_ncm_rates(ncm: str, llm: Optional[ChatModel] = None) -> Dict[str, Any]:
    return extraction.get_ncm_rates(ncm, llm)


@action()
def run_extract_invoice_items(
    file_data_uri: str, file_name: Optional[str] = None, llm: Optional[ChatModel] = None
) -> Dict[str, Any]:
    return extraction.extract_invoice_items(file_data_uri, file_name, llm)


@action()
def run_register_due(data: Mapping[str, Any]) -> Dict[str, Any]:
    return SiscomexClient().register_due(data)


@action()
def run_register_duimp(data: Mapping[str, Any]) -> Dict[str, Any]:
    return SiscomexClient().register_duimp(data)


# Documents ----------------------------------------------------------------


@action()
def run_generate_quote_html(data: Mapping[str, Any]) -> Dict[str, str]:
    return {"html": documents.render_quote_html(data)}


@action()
def run_generate_client_invoice_html(data: Mapping[str, Any]) -> Dict[str, str]:
    return {"html": documents.render_client_invoice_html(data)}


@action()
def run_generate_agent_invoice_html(data: Mapping[str, Any]) -> Dict[str, str]:
    return {"html": documents.render_agent_invoice_html(data)}


@action()
def run_generate_hbl_html(
    repo: CollectionRepository, shipment_id: str, is_original: bool = False
) -> Dict[str, str]:
    shipment = repo.get_shipment(shipment_id)
    context = documents.hbl_context(
        shipment,
        is_original=is_original,
        signature_url=current_app.config.get("CARGA_SIGNATURE_URL"),
        company_logo_url=current_app.config.get("CARGA_LOGO_URL"),
    )
    return {"html": documents.render_hbl_html(context)}


@action()
def run_generate_simulation_html(repo: CollectionRepository, simulation_id: str) -> Dict[str, str]:
    record = repo.find("simulations", simulation_id)
    result = calculate_simulation(SimulationInput.from_dict(record["data"]))
    return {
        "html": documents.render_simulation_html(
            record["name"], record["customer"], record["createdAt"], result.to_dict()
        )
    }


# Client and agent portal --------------------------------------------------


def fetch_shipment_for_draft(repo: CollectionRepository, shipment_id: str) -> ActionResult:
    try:
        shipment = repo.get_shipment(shipment_id)
    except NoResultFound:
        return {"success": False, "error": DRAFT_NOT_FOUND}
    except Exception:
        current_app.logger.exception("Failed to load shipment %s for draft", shipment_id)
        return {"success": False, "error": DRAFT_UNEXPECTED}
    return {"success": True, "data": shipment.to_dict()}


def submit_bl_draft(
    repo: CollectionRepository, shipment_id: str, draft: Mapping[str, Any], is_late: bool
) -> ActionResult:
    """Attach the client's BL draft to the shipment and persist it."""

    try:
        shipment = repo.get_shipment(shipment_id)
    except NoResultFound:
        return {"success": False, "error": SHIPMENT_NOT_FOUND}
    try:
        updated = apply_bl_draft(shipment, BLDraftData.from_dict(draft), is_late)
        repo.update_shipment(updated)
    except Exception as exc:
        return _failure(exc, "Failed to submit BL draft")
    current_app.logger.info("BL draft received for %s (late=%s)", shipment_id, is_late)
    return {"success": True, "data": updated.to_dict()}


def update_shipment_from_agent(
    repo: CollectionRepository, shipment_id: str, data: Mapping[str, Any]
) -> ActionResult:
    try:
        shipment = repo.get_shipment(shipment_id)
    except NoResultFound:
        return {"success": False, "error": SHIPMENT_NOT_FOUND}
    try:
        updated = apply_agent_update(shipment, data)
        repo.update_shipment(updated)
    except Exception as exc:
        return _failure(exc, "Failed to update shipment")
    return {"success": True, "data": updated.to_dict()}


__all__ = [
    "action",
    "fetch_shipment_for_draft",
    "run_consult_nfse",
    "run_create_crm_entry",
    "run_create_email_campaign",
    "run_detect_carrier",
    "run_extract_invoice_items",
    "run_extract_partner_info",
    "run_extract_quote_details",
    "run_extract_rates",
    "run_generate_agent_invoice_html",
    "run_generate_client_invoice_html",
    "run_generate_di_xml",
    "run_generate_di_xml_from_spreadsheet",
    "run_generate_hbl_html",
    "run_generate_nfse_xml",
    "run_generate_quote_html",
    "run_generate_simulation_html",
    "run_get_courier_rates",
    "run_get_courier_status",
    "run_get_flight_schedules",
    "run_get_freight_rates",
    "run_get_ncm_rates",
    "run_get_tracking_info",
    "run_get_vessel_schedules",
    "run_monitor_tasks",
    "run_refresh_booking",
    "run_register_due",
    "run_register_duimp",
    "run_request_agent_quote",
    "run_send_demurrage_invoice",
    "run_send_draft_approval_request",
    "run_send_email",
    "response_links",
    "run_send_quote",
    "run_send_shipping_instructions",
    "run_send_to_legal",
    "run_send_whatsapp",
    "run_share_simulation",
    "submit_bl_draft",
    "update_shipment_from_agent",
]
