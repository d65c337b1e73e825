"""Prompt flows that draft outgoing emails and WhatsApp messages."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..documents import format_brl
from .llm import ChatModel, invoke_json, render_prompt
from .schemas import EmailAndWhatsapp, EmailContent

logger = logging.getLogger(__name__)

BRAND_COLOR = "#F97316"

JSON_ONLY = "Return ONLY a valid JSON object, without markdown fences or commentary."

SEND_QUOTE_PROMPT = """You are an expert logistics assistant. Create a professional and friendly communication for a customer, which is either a freight quote or an invoice notification.

Language rule: {% if is_client_agent %}the whole communication MUST be in English{% else %}the whole communication MUST be in Portuguese{% endif %}.

1. emailSubject: {% if is_invoice %}"{{ 'Service Invoice' if is_client_agent else 'Fatura de Serviços' }} ({{ quote_id }}) | CargaInteligente"{% else %}"{{ 'Freight Quotation' if is_client_agent else 'Sua Cotação de Frete' }} ({{ quote_id }}) | CargaInteligente"{% endif %}

2. emailBody: a well formatted HTML email. Start with a friendly greeting.
{% if is_invoice %}
   State that you are sending the invoice for services provided and display the total amount.
{% else %}
   Present the quote details in a structured way (Origin, Destination, Carrier, Transit Time, Final Price).
{% endif %}
   Include a prominent, styled HTML button (<a href="..." style="...">...</a>) with the text "{{ 'View and Approve Quote' if is_client_agent else 'Ver e Aprovar Cotação' }}" linking to {{ approval_link }}. End with a professional closing.

3. whatsappMessage: exactly this text:
{% if is_invoice and is_client_agent %}
Hello {{ customer_name }}! Your invoice ({{ quote_id }}) for {{ rate.finalPrice }} is available. To view and pay, visit: {{ approval_link }}
{% elif is_invoice %}
Olá {{ customer_name }}! Sua fatura ({{ quote_id }}) no valor de {{ rate.finalPrice }} está disponível. Para visualizar e pagar, acesse: {{ approval_link }}
{% elif is_client_agent %}
Hello {{ customer_name }}! Your freight quote ({{ quote_id }}) is ready. From {{ rate.origin }} to {{ rate.destination }}. To see the details and approve, please visit the link: {{ approval_link }}
{% else %}
Olá {{ customer_name }}! Sua cotação de frete ({{ quote_id }}) está pronta. De {{ rate.origin }} para {{ rate.destination }}. Para ver os detalhes e aprovar, acesse o link: {{ approval_link }}
{% endif %}

Input data:
- Customer name: {{ customer_name }}
- ID: {{ quote_id }}
- Details: {{ rate | tojson_pretty }}
- Approval/payment link: {{ approval_link }}
- Rejection/dispute link: {{ rejection_link }}

Answer with the keys emailSubject, emailBody and whatsappMessage.
""" + JSON_ONLY

DEMURRAGE_INVOICE_PROMPT = """You are an expert financial assistant for a logistics company. Write a professional and clear email in Portuguese sending a demurrage invoice to a client.

1. emailSubject: "Fatura de Demurrage: {{ invoice_id }} | Processo: {{ process_id }}"
2. emailBody (HTML): greet the customer {{ customer_name }}, state that the invoice covers demurrage charges for the container and process below and list:
   - Nº da Fatura: {{ invoice_id }}
   - Processo: {{ process_id }}
   - Contêiner: {{ container_number }}
   - Valor Total: <strong>{{ total_amount_usd }}</strong>
   - Data de Vencimento: {{ due_date }}
   Add this note: "Por favor, note que o pagamento deve ser feito em Reais (BRL). A taxa de câmbio PTAX do dia do pagamento será utilizada, acrescida de 8% de margem. A taxa de referência hoje é de {{ exchange_rate }}."
   Close with "O boleto e a nota fiscal estão em anexo." and a professional closing.

Answer with the keys emailSubject and emailBody.
""" + JSON_ONLY

AGENT_QUOTE_PROMPT = """You are a freight forwarding operations assistant. Write a clear and professional email in English asking a freight agent for a quote.

1. emailSubject: for example "Rate Request: {{ origin }} to {{ destination }} ({{ modal }})"
2. emailBody (HTML): greet with "Dear Agent,", state that you are requesting a quote for the shipment below, list the core information, include the shipment details inside a <pre> tag, ask for their best all-in rates, thank them and close with "Best regards,".

Core information:
- Origin: {{ origin }}
- Destination: {{ destination }}
- Incoterm: {{ incoterm }}
{% if departure_date %}
- Cargo Ready Date: {{ departure_date }}
{% endif %}

Shipment details:
<pre>{{ shipment_details }}</pre>

Answer with the keys emailSubject and emailBody.
""" + JSON_ONLY

LEGAL_PROMPT = """You are an expert financial assistant. Write a formal email in Portuguese forwarding a collection case to a lawyer.

1. emailSubject: "Ação de Cobrança: Cliente {{ customer_name }} / Fatura {{ invoice_id }}"
2. emailBody (HTML): greet with "Prezado(a) Dr(a). {{ lawyer_name }},", state that the case is forwarded for legal collection and list:
   - Cliente Devedor: {{ customer_name }}
   - Nº da Fatura: {{ invoice_id }}
   - Nº do Processo: {{ process_id }}
   - Valor Devido: {{ invoice_amount }}
   Under the heading "Instruções do Financeiro:" include: {{ comments }}
   State that the documents (Fatura e cópia do HBL) are attached. Close with "Agradecemos a atenção e solicitamos a confirmação de recebimento, bem como os próximos passos a serem tomados. Atenciosamente,".

Answer with the keys emailSubject and emailBody.
""" + JSON_ONLY

CAMPAIGN_PROMPT = """You are a marketing expert for a freight forwarding company called "CargaInteligente". Based on the instruction below, write a professional and persuasive promotional email in Brazilian Portuguese. Be friendly and clear, highlight the special offer and start with a generic greeting such as "Olá," because the email is sent in bulk. The body must be valid HTML.

Instruction:
{{ instruction }}

Example answer:
{"emailSubject": "Oferta Especial: Frete de Shanghai para Santos!", "emailBody": "<p>Olá,</p><p>Temos uma tarifa especial para a rota <strong>Shanghai x Santos</strong>.</p><p>Atenciosamente,<br>Equipe CargaInteligente</p>"}

""" + JSON_ONLY

SHARE_SIMULATION_PROMPT = """You are an expert logistics assistant. Write a professional communication in Portuguese sharing an import cost simulation with a client.

1. emailSubject: "Simulação de Custos de Importação: {{ simulation_name }}"
2. emailBody (HTML): greet the client, state that the simulation is shared as requested, display "Custo Total Estimado: <strong>BRL {{ total_cost }}</strong>" and include a styled button "Ver Detalhes da Simulação" linking to {{ simulation_link }}. End with a professional closing.
3. whatsappMessage: "Olá {{ customer_name }}! Sua simulação de custos '{{ simulation_name }}' está pronta. O custo total estimado é de R$ {{ total_cost }}. Veja todos os detalhes no link: {{ simulation_link }}"

Answer with the keys emailSubject, emailBody and whatsappMessage.
""" + JSON_ONLY

SHIPPING_INSTRUCTIONS_PROMPT = """You are a logistics operations expert. Write a detailed "Shipping Instructions" email in English to a freight agent. The body is a single HTML string that resembles a draft Bill of Lading, laid out with tables and inline CSS (primary color '{{ color }}', font 'Arial, sans-serif').

1. emailSubject: "SHIPPING INSTRUCTIONS - CargaInteligente // Shipper: {{ shipper.name }} // Cnee: {{ consignee_name }}"
2. emailBody:
   - Greeting "Dear {{ agent_name }},".
   - "Please find below our shipping instructions. Kindly proceed with the booking and send us the confirmation and draft BL for approval."
   - A table titled "DRAFT BILL OF LADING INSTRUCTIONS" with sections:
     Shipper: {{ shipper.name }}, {{ shipper_address }}, contact {{ shipper_contact }}
     Consignee: {{ consignee_name }}
     Notify Party: SAME AS CONSIGNEE
     Cargo: description "{{ commodity }}", NCM/HS Code "{{ ncm }}"
     Freight & Charges: Freight "AS AGREED", THC "{{ thc_value }}"
   - A button (background: {{ color }}; color: white) "Update Booking Details" linking to {{ update_link }}.
   - A separate section "FINANCIAL AGREEMENT (For Agent Use Only)" listing Freight Cost {{ freight_cost }}, Freight Sale {{ freight_sale }} and Agent Profit {{ agent_profit }}.
   - A professional closing.

Answer with the keys emailSubject and emailBody.
""" + JSON_ONLY

DRAFT_APPROVAL_PROMPT = """You are a logistics operations expert. Write a professional email in Portuguese asking a client to approve a draft House Bill of Lading (HBL).

1. emailSubject: "Aprovação de Draft HBL - Processo: {{ shipment_id }}"
2. emailBody (HTML): greet {{ customer_name }}, say the HBL draft for the process is available for approval and use this exact sentence: "Por favor, verifique todos os dados com atenção. O prazo para solicitar alterações sem custo é até <strong>{{ deadline }}</strong>. Após esta data, correções estarão sujeitas a taxas do armador." Include a styled button linking to {{ preview_link }} and a professional closing.

Answer with the keys emailSubject and emailBody.
""" + JSON_ONLY

_ROUTE_PATTERN = re.compile(r"(?:de|from)\s+([\w\s,]+?)\s+(?:para|to)|([\w\s,]+?)\s*x\s*([\w\s,]+)")
_DESTINATION_PATTERN = re.compile(r"(?:para|to)\s+([\w\s,]+)")


def send_quote(
    customer_name: str,
    quote_id: str,
    rate_details: Mapping[str, Any],
    approval_link: str,
    rejection_link: str,
    *,
    is_client_agent: bool = False,
    is_invoice: bool = False,
    llm: Optional[ChatModel] = None,
) -> Dict[str, str]:
    logger.info("Generating %s communication for %s", "invoice" if is_invoice else "quote", customer_name)
    prompt = render_prompt(
        SEND_QUOTE_PROMPT,
        customer_name=customer_name,
        quote_id=quote_id,
        rate=dict(rate_details),
        approval_link=approval_link,
        rejection_link=rejection_link,
        is_client_agent=is_client_agent,
        is_invoice=is_invoice,
    )
    result = invoke_json(
        prompt, EmailAndWhatsapp, llm, empty_message="AI failed to generate communication content."
    )
    return result.model_dump()


def send_demurrage_invoice(
    customer_name: str,
    invoice_id: str,
    process_id: str,
    container_number: str,
    due_date: str,
    total_amount_usd: str,
    exchange_rate: str,
    llm: Optional[ChatModel] = None,
) -> Dict[str, str]:
    prompt = render_prompt(
        DEMURRAGE_INVOICE_PROMPT,
        customer_name=customer_name,
        invoice_id=invoice_id,
        process_id=process_id,
        container_number=container_number,
        due_date=due_date,
        total_amount_usd=total_amount_usd,
        exchange_rate=exchange_rate,
    )
    return invoke_json(prompt, EmailContent, llm).model_dump()


def build_shipment_details(form: Mapping[str, Any]) -> str:
    """Plain-text cargo summary embedded in agent quote requests."""

    lines: List[str] = []
    if form.get("modal") == "ocean":
        shipment_type = form.get("oceanShipmentType", "FCL")
        lines += ["Mode of Transport: Ocean", f"Shipment Type: {shipment_type}"]
        if shipment_type == "FCL":
            lines.append("Containers:")
            for container in (form.get("oceanShipment") or {}).get("containers", []):
                lines.append(f"- {container.get('quantity')} x {container.get('type')}")
        else:
            lcl = form.get("lclDetails") or {}
            lines += [
                "LCL Details:",
                f"- Volume: {lcl.get('cbm')} CBM",
                f"- Weight: {lcl.get('weight')} KG",
            ]
    else:
        air = form.get("airShipment") or {}
        lines += ["Mode of Transport: Air", "Pieces:"]
        for piece in air.get("pieces", []):
            lines.append(
                f"- {piece.get('quantity')} piece(s), "
                f"{piece.get('length')}x{piece.get('width')}x{piece.get('height')} cm, "
                f"{piece.get('weight')} kg each."
            )
        lines.append(f"Is Stackable: {'Yes' if air.get('isStackable') else 'No'}")
    return "\n".join(lines)


def _iso_day(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str) and value:
        return value[:10]
    return None


def request_agent_quote(form: Mapping[str, Any], llm: Optional[ChatModel] = None) -> Dict[str, str]:
    prompt = render_prompt(
        AGENT_QUOTE_PROMPT,
        origin=form.get("origin", ""),
        destination=form.get("destination", ""),
        modal=form.get("modal", ""),
        incoterm=form.get("incoterm", ""),
        departure_date=_iso_day(form.get("departureDate")),
        shipment_details=build_shipment_details(form),
    )
    return invoke_json(prompt, EmailContent, llm).model_dump()


def send_to_legal(
    lawyer_name: str,
    customer_name: str,
    invoice_id: str,
    process_id: str,
    invoice_amount: str,
    comments: str,
    llm: Optional[ChatModel] = None,
) -> Dict[str, str]:
    prompt = render_prompt(
        LEGAL_PROMPT,
        lawyer_name=lawyer_name,
        customer_name=customer_name,
        invoice_id=invoice_id,
        process_id=process_id,
        invoice_amount=invoice_amount,
        comments=comments,
    )
    result = invoke_json(prompt, EmailContent, llm, empty_message="AI failed to generate legal email.")
    return result.model_dump()


def find_relevant_clients(
    instruction: str,
    shipments: Iterable[Mapping[str, Any]],
    quotes: Iterable[Mapping[str, Any]],
) -> List[str]:
    """Customers with a shipment or quote on the route named in ``instruction``.

    The route is read from "de X para Y", "from X to Y" or "X x Y"; only the
    part before the first comma of each side is matched, case-insensitively.
    """

    text = instruction.lower()
    match = _ROUTE_PATTERN.search(text)
    origin = destination = None
    if match:
        if match.group(1):
            to_match = _DESTINATION_PATTERN.search(text)
            if to_match:
                origin, destination = match.group(1).strip(), to_match.group(1).strip()
        elif match.group(2) and match.group(3):
            origin, destination = match.group(2).strip(), match.group(3).strip()
    if not origin or not destination:
        logger.info("Could not determine route from instruction.")
        return []

    origin = origin.split(",")[0].strip()
    destination = destination.split(",")[0].strip()
    found: List[str] = []
    for record in [*shipments, *quotes]:
        if (
            origin in str(record.get("origin", "")).lower()
            and destination in str(record.get("destination", "")).lower()
        ):
            customer = record.get("customer")
            if customer and customer not in found:
                found.append(customer)
    return found


def create_email_campaign(
    instruction: str,
    shipments: Iterable[Mapping[str, Any]],
    quotes: Iterable[Mapping[str, Any]],
    llm: Optional[ChatModel] = None,
) -> Dict[str, Any]:
    clients = find_relevant_clients(instruction, shipments, quotes)
    if not clients:
        logger.info("No specific clients found, generating a generic email template.")
    content = invoke_json(
        render_prompt(CAMPAIGN_PROMPT, instruction=instruction),
        EmailContent,
        llm,
        empty_message="AI failed to generate email content.",
    )
    return {"clients": clients, **content.model_dump()}


def share_simulation(
    customer_name: str,
    simulation_name: str,
    total_cost_brl: float,
    simulation_link: str,
    llm: Optional[ChatModel] = None,
) -> Dict[str, str]:
    prompt = render_prompt(
        SHARE_SIMULATION_PROMPT,
        customer_name=customer_name,
        simulation_name=simulation_name,
        total_cost=format_brl(total_cost_brl),
        simulation_link=simulation_link,
    )
    result = invoke_json(
        prompt,
        EmailAndWhatsapp,
        llm,
        empty_message="A IA não conseguiu gerar o conteúdo para compartilhamento.",
    )
    return result.model_dump()


def send_shipping_instructions(data: Mapping[str, Any], llm: Optional[ChatModel] = None) -> Dict[str, str]:
    """Shipping instructions email for the agent.

    ``data`` carries ``agentName``, ``agentEmail``, ``shipper`` (a partner
    dict), ``consigneeName``, ``notifyName``, ``freightCost``,
    ``freightSale``, ``agentProfit``, ``thcValue``, ``commodity``, ``ncm`` and
    ``updateLink``.
    """

    shipper = dict(data.get("shipper") or {})
    shipper.setdefault("name", "")
    address = shipper.get("address") or {}
    contact = (shipper.get("contacts") or [{}])[0]
    logger.info("Generating shipping instructions for %s", data.get("agentEmail"))
    prompt = render_prompt(
        SHIPPING_INSTRUCTIONS_PROMPT,
        color=BRAND_COLOR,
        agent_name=data.get("agentName", ""),
        shipper=shipper,
        shipper_address=", ".join(
            str(address.get(key, "")) for key in ("street", "number", "city", "country")
        ),
        shipper_contact=" / ".join(
            str(contact.get(key, "")) for key in ("name", "email", "phone")
        ),
        consignee_name=data.get("consigneeName", ""),
        commodity=data.get("commodity", ""),
        ncm=data.get("ncm", ""),
        thc_value=data.get("thcValue", ""),
        update_link=data.get("updateLink", ""),
        freight_cost=data.get("freightCost", ""),
        freight_sale=data.get("freightSale", ""),
        agent_profit=data.get("agentProfit", ""),
    )
    return invoke_json(prompt, EmailContent, llm).model_dump()


def send_draft_approval_request(
    customer_name: str,
    shipment_id: str,
    deadline: str,
    hbl_preview_link: str,
    llm: Optional[ChatModel] = None,
) -> Dict[str, str]:
    prompt = render_prompt(
        DRAFT_APPROVAL_PROMPT,
        customer_name=customer_name,
        shipment_id=shipment_id,
        deadline=deadline,
        preview_link=hbl_preview_link,
    )
    return invoke_json(prompt, EmailContent, llm).model_dump()


__all__ = [
    "build_shipment_details",
    "create_email_campaign",
    "find_relevant_clients",
    "request_agent_quote",
    "send_demurrage_invoice",
    "send_draft_approval_request",
    "send_quote",
    "send_shipping_instructions",
    "send_to_legal",
    "share_simulation",
]
