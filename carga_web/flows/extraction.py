"""Prompt flows that pull structured data out of free text and files."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from .files import prompt_input_from_file
from .llm import ChatModel, FlowError, invoke_json, render_prompt
from .schemas import (
    CarrierGuess,
    CourierStatus,
    CrmEntry,
    EmailTaskAnalysis,
    ExtractedRates,
    GeneratedXml,
    InvoiceItems,
    NcmRates,
    PartnerInfo,
    QuoteDetailsDraft,
)

logger = logging.getLogger(__name__)

JSON_ONLY = "Return ONLY a valid JSON object, without markdown fences or commentary."

PARTNER_INFO_PROMPT = """You are an expert data entry assistant for a logistics company. Extract company and contact information from the unstructured text below.

Extraction rules:
- Identify the company name, address details and one or more contacts.
- For each contact find a name, email and phone number.
- A contact can belong to several departments. Valid departments are: 'Comercial', 'Operacional', 'Financeiro', 'Importação', 'Exportação', 'Outro'.
- Extract every available address component (street, number, complement, district, city, state, zip, country).
- When a piece of information is missing return "" (or [] for lists). Never use "N/A" or "unknown".

The JSON object has the keys "name", "cnpj", "address" and "contacts".

Text:
{{ text }}

""" + JSON_ONLY

RATES_PROMPT = """You are a logistics AI assistant. Extract freight rates from the content below and return a JSON object with a single key "rates" holding a list of rate objects with the keys origin, destination, carrier, modal ('Aéreo' or 'Marítimo'), rate (with currency, e.g. "USD 2500"), container, transitTime, validity and freeTime.

Multi-rate and multi-port rules:
- A rate quoted for several ports ("BR base ports") becomes one identical object per port. "BR base ports" means Santos, Itapoá, Navegantes, Paranaguá, Rio Grande.
- Rates separated by a slash ("USD 5623/5826") become one object per rate; the implied container order is 20'GP, 40'GP, 40'HC. "USD 5623/5826 for 20/40HC" means 20'GP at "USD 5623" and 40'HC at "USD 5826".

Formatting:
- freeTime holds only the number of days ("21 days" -> "21").
- validity holds only the end date of a range ("valid until 21/07/2025" -> "21/07/2025").
- Normalise locations ("Rotterdam" -> "Roterdã, NL", "Shanghai" -> "Xangai, CN").
- "NOR" and "40'Non Operating Reefer" both mean "40'NOR".
{% if text %}

Content:
{{ text }}
{% else %}

The content is the attached image.
{% endif %}

""" + JSON_ONLY

QUOTE_DETAILS_PROMPT = """You are a logistics operations expert. Extract freight quoting information from the text below as a JSON object that partially fills the quote form.

Rules:
- modal is 'air' or 'ocean'; containers such as 20ft or 40ft mean 'ocean'.
- origin and destination use the 'City, CC' format (e.g. "Santos, BR").
- incoterm is the Incoterm code (FOB, EXW...).
- For ocean FCL fill oceanShipmentType "FCL" and oceanShipment.containers with type and quantity. Map 20ft or 20' to 20'GP, 40ft or 40' to 40'GP and 40hc to 40'HC.
- commodity is the description of the goods, when present.
- Do not guess. Omit every field the text does not mention.

Text:
{{ text }}

""" + JSON_ONLY

CRM_ENTRY_PROMPT = """You are an AI assistant that turns emails into CRM entries.

Email content:
{{ email_content }}

Return a JSON object with:
- contactName: the name of the person who sent the email.
- companyName: the company the contact works for.
- emailAddress: a valid email address of the contact.
- summary: a brief summary of the email.
- priority: one of high, medium, low.
Use "unknown" for information that is not available.

""" + JSON_ONLY

EMAIL_TASKS_PROMPT = """You are an AI assistant that monitors emails for operational or financial tasks. Decide whether the email asks for an action, classify the task as operational, financial or both, and whether a reminder is needed considering urgency, deadlines and explicit requests.

Email subject: {{ subject }}
Email content: {{ content }}
Sender: {{ sender }}

Answer with the keys taskDetected, taskDescription, isOperational, isFinancial and reminderNeeded.

""" + JSON_ONLY

INVOICE_ITEMS_PROMPT = """You are an expert data extraction AI for logistics. Extract every product line item from the text below (CSV, XML or plain invoice text) into a JSON object with a single key "items". Each item has:
- descricao: full product description.
- quantidade: number of units.
- valorUnitarioUSD: price PER UNIT in USD.
- ncm: the NCM code.
- pesoKg: weight PER UNIT in kilograms.

Rules:
1. When only a total price is given, divide it by the quantity.
2. When only a total weight is given, divide it by the quantity.
3. Do not invent information. Skip items with missing fields.

Text:
{{ text }}

""" + JSON_ONLY

NCM_RATES_PROMPT = """You are a Brazilian customs expert. Give the standard federal ad valorem import rates for NCM {{ ncm }}.

Rules:
- Rates are percentages (14% -> 14).
- Ignore special regimes, ex-tarifários and state ICMS.
- The standard import PIS rate is 2.10 and COFINS is 9.65.
- Add a one-sentence description of the NCM category.

Example for NCM 85171231 (smartphones):
{"ncm": "85171231", "ii": 16, "ipi": 15, "pis": 2.10, "cofins": 9.65, "description": "Telefones celulares inteligentes (smartphones)."}

""" + JSON_ONLY

CARRIER_PROMPT = """You are an expert in freight forwarding. Identify the shipping carrier from the format of this booking or Bill of Lading number: {{ booking_number }}

Known patterns: Maersk (9 digits or MAEU), MSC (MSCU), Hapag-Lloyd (10 digits or HLCU), CMA CGM (CMDU or CGM), Evergreen (EGLV), COSCO (COSU), ONE (ONEY), ZIM (ZIMU), Yang Ming (YMLU), HMM (HDMU), OOCL (OOLU).

Answer with {"carrier": "<name>"} and use "Unknown" when the carrier cannot be identified.

""" + JSON_ONLY

COURIER_STATUS_PROMPT = """You are a logistics assistant that reports courier tracking. For the courier {{ courier }} and tracking number {{ tracking_number }}, write one plausible and concise last known status sentence, as it would appear on the courier's tracking website (for example "Out for delivery." or "Customs clearance process is underway."). Do not mention simulation.

Answer with {"lastStatus": "<sentence>"}.

""" + JSON_ONLY

DI_FROM_SPREADSHEET_PROMPT = """You are an expert system for Brazilian import declarations (Declaração de Importação, DI). Convert the spreadsheet items and the shipment data below into DI XML.

Rules:
- Follow the example structure exactly.
- Format numbers with the padding and precision the DI layout requires; dates as YYYYMMDD.
- Group every spreadsheet item as a <mercadoria> under a single <adicao>.
- Use the shipment data as the primary source for general fields (carrier, vessel, dates, HBL/MBL numbers).
- <informacoesComplementares> holds a detailed summary of the shipment.

Spreadsheet items:
{{ items | tojson_pretty }}

Shipment data:
{{ shipment | tojson_pretty }}

Example structure:
<ListaDeclaracoesTransmissao xmlns:xsd="http://www.w3.org/2001/XMLSchema" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">
<declaracao>
<adicao>
<codigoMercadoriaNCM>...</codigoMercadoriaNCM>
<mercadoria>
<textoDetalhamentoMercadoria>...</textoDetalhamentoMercadoria>
<quantidadeMercadoriaUnidadeComercializada>...</quantidadeMercadoriaUnidadeComercializada>
<valorUnidadeLocalEmbarque>...</valorUnidadeLocalEmbarque>
</mercadoria>
<nomeFornecedorEstrangeiro>...</nomeFornecedorEstrangeiro>
<pesoLiquidoMercadoria>...</pesoLiquidoMercadoria>
</adicao>
<cargaPesoBruto>...</cargaPesoBruto>
<cargaPesoLiquido>...</cargaPesoLiquido>
<dataChegadaCarga>...</dataChegadaCarga>
<dataEmbarque>...</dataEmbarque>
<documentoInstrucaoDespacho>...</documentoInstrucaoDespacho>
<nomeVeiculoViaTransporte>...</nomeVeiculoViaTransporte>
<numeroDocumentoCarga>...</numeroDocumentoCarga>
<numeroDocumentoCargaMaster>...</numeroDocumentoCargaMaster>
<numeroImportador>...</numeroImportador>
</declaracao>
</ListaDeclaracoesTransmissao>

Answer with {"xml": "<the complete XML>"}.

""" + JSON_ONLY

_CARRIER_PREFIXES = (
    ("MAEU", "Maersk"),
    ("MSCU", "MSC"),
    ("HLCU", "Hapag-Lloyd"),
    ("CMDU", "CMA CGM"),
    ("CGM", "CMA CGM"),
    ("EGLV", "Evergreen"),
    ("COSU", "COSCO"),
    ("ONEY", "ONE"),
    ("ZIMU", "ZIM"),
    ("YMLU", "Yang Ming"),
    ("HDMU", "HMM"),
    ("OOLU", "OOCL"),
)


def extract_partner_info(text: str, llm: Optional[ChatModel] = None) -> Dict[str, Any]:
    if not text.strip():
        raise FlowError("Nenhum texto foi fornecido para extração.")
    result = invoke_json(
        render_prompt(PARTNER_INFO_PROMPT, text=text),
        PartnerInfo,
        llm,
        empty_message="A IA não conseguiu extrair nenhuma informação do texto.",
    )
    return result.model_dump()


def extract_rates(
    text: Optional[str] = None,
    file_data_uri: Optional[str] = None,
    file_name: Optional[str] = None,
    llm: Optional[ChatModel] = None,
) -> List[Dict[str, Any]]:
    """Rates from pasted text or an uploaded file (eml, msg, xlsx, xls, csv, pdf, images).

    Raises:
        FlowError: No input, unsupported file or no rate recognised.
    """

    media_url = None
    if file_data_uri and file_name:
        text, media_url = prompt_input_from_file(file_data_uri, file_name)
    elif not (text and text.strip()):
        raise FlowError("Nenhum texto ou arquivo foi fornecido para extração.")

    failure = (
        "A IA não conseguiu extrair nenhuma tarifa válida do texto. "
        "Tente ajustar o texto ou cole um trecho mais claro."
    )
    result = invoke_json(
        render_prompt(RATES_PROMPT, text=text),
        ExtractedRates,
        llm,
        empty_message=failure,
        media_url=media_url,
    )
    if not result.rates:
        raise FlowError(failure)
    return [rate.model_dump() for rate in result.rates]


def extract_quote_details(text: str, llm: Optional[ChatModel] = None) -> Dict[str, Any]:
    result = invoke_json(render_prompt(QUOTE_DETAILS_PROMPT, text=text), QuoteDetailsDraft, llm)
    return result.model_dump(exclude_none=True)


def create_crm_entry(email_content: str, llm: Optional[ChatModel] = None) -> Dict[str, Any]:
    result = invoke_json(
        render_prompt(CRM_ENTRY_PROMPT, email_content=email_content),
        CrmEntry,
        llm,
        empty_message="AI failed to generate CRM entry.",
    )
    return result.model_dump()


def monitor_email_for_tasks(
    content: str, subject: str, sender: str, llm: Optional[ChatModel] = None
) -> Dict[str, Any]:
    result = invoke_json(
        render_prompt(EMAIL_TASKS_PROMPT, content=content, subject=subject, sender=sender),
        EmailTaskAnalysis,
        llm,
        empty_message="AI failed to generate task analysis.",
    )
    return result.model_dump()


def extract_invoice_items(
    file_data_uri: str, file_name: str, llm: Optional[ChatModel] = None
) -> List[Dict[str, Any]]:
    """Invoice line items from an xlsx, xls, csv or xml upload."""

    if not file_name.lower().endswith((".xlsx", ".xls", ".csv", ".xml")):
        raise FlowError("Unsupported file type. Please use .xlsx, .xls, .csv, or .xml")
    text, _ = prompt_input_from_file(file_data_uri, file_name)
    if not (text or "").strip():
        raise FlowError("The file appears to be empty or could not be read.")
    failure = (
        "A IA não conseguiu extrair nenhum item válido do arquivo. "
        "Verifique o conteúdo e o formato."
    )
    result = invoke_json(
        render_prompt(INVOICE_ITEMS_PROMPT, text=text), InvoiceItems, llm, empty_message=failure
    )
    if not result.items:
        raise FlowError(failure)
    return [item.model_dump() for item in result.items]


def get_ncm_rates(ncm: str, llm: Optional[ChatModel] = None) -> Dict[str, Any]:
    digits = re.sub(r"\D", "", ncm)
    if len(digits) != 8:
        raise FlowError("NCM deve ter 8 dígitos")
    result = invoke_json(
        render_prompt(NCM_RATES_PROMPT, ncm=digits),
        NcmRates,
        llm,
        empty_message="AI failed to generate NCM rate information.",
    )
    data = result.model_dump()
    data["ncm"] = digits
    return data


def carrier_from_prefix(booking_number: str) -> Optional[str]:
    """Carrier implied by a known prefix or numeric length, if any."""

    number = booking_number.strip().upper()
    for prefix, carrier in _CARRIER_PREFIXES:
        if number.startswith(prefix):
            return carrier
    if number.isdigit():
        if len(number) == 9:
            return "Maersk"
        if len(number) == 10:
            return "Hapag-Lloyd"
    return None


def detect_carrier(booking_number: str, llm: Optional[ChatModel] = None) -> Dict[str, str]:
    known = carrier_from_prefix(booking_number)
    if known:
        return {"carrier": known}
    result = invoke_json(
        render_prompt(CARRIER_PROMPT, booking_number=booking_number), CarrierGuess, llm
    )
    return {"carrier": result.carrier or "Unknown"}


def get_courier_status(
    courier: str, tracking_number: str, llm: Optional[ChatModel] = None
) -> Dict[str, str]:
    result = invoke_json(
        render_prompt(COURIER_STATUS_PROMPT, courier=courier, tracking_number=tracking_number),
        CourierStatus,
        llm,
    )
    return result.model_dump()


def generate_di_xml_from_spreadsheet(
    items: List[Mapping[str, Any]], shipment: Mapping[str, Any], llm: Optional[ChatModel] = None
) -> Dict[str, str]:
    failure = "A IA não conseguiu gerar o XML. Verifique os dados da planilha e do processo."
    result = invoke_json(
        render_prompt(DI_FROM_SPREADSHEET_PROMPT, items=list(items), shipment=dict(shipment)),
        GeneratedXml,
        llm,
        empty_message=failure,
    )
    if not result.xml.strip():
        raise FlowError(failure)
    return {"xml": result.xml}


__all__ = [
    "carrier_from_prefix",
    "create_crm_entry",
    "detect_carrier",
    "extract_invoice_items",
    "extract_partner_info",
    "extract_quote_details",
    "extract_rates",
    "generate_di_xml_from_spreadsheet",
    "get_courier_status",
    "get_ncm_rates",
    "monitor_email_for_tasks",
]
