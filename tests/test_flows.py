"""Tests for the prompt flows, with the chat model replaced by a fake."""

from __future__ import annotations

import base64

import pytest

from carga_common.rates import initial_quotes
from carga_web import AppConfig, create_app
from carga_web.flows import FlowError
from carga_web.flows.extraction import (
    carrier_from_prefix,
    create_crm_entry,
    detect_carrier,
    extract_invoice_items,
    extract_partner_info,
    extract_quote_details,
    extract_rates,
    generate_di_xml_from_spreadsheet,
    get_ncm_rates,
    monitor_email_for_tasks,
)
from carga_web.flows.files import decode_data_uri, email_text, prompt_input_from_file
from carga_web.flows.llm import configured_model, invoke_json, render_prompt, strip_fences
from carga_web.flows.messaging import (
    build_shipment_details,
    create_email_campaign,
    find_relevant_clients,
    request_agent_quote,
    send_quote,
    share_simulation,
)
from carga_web.flows.schemas import CarrierGuess

RATE = {
    "origin": "Santos, BR",
    "destination": "Roterdã, NL",
    "carrier": "Maersk",
    "modal": "Marítimo",
    "rate": "USD 2500",
    "container": "40'HC",
    "transitTime": "25-30",
    "validity": "31/07/2024",
    "freeTime": "14",
}


def _data_uri(content: bytes, mime: str = "text/plain") -> str:
    return f"data:{mime};base64,{base64.b64encode(content).decode()}"


def test_strip_fences_and_render_prompt():
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fences("  {}  ") == "{}"
    assert render_prompt("{{ value | tojson_pretty }}", value={"ç": 1}) == '{\n  "ç": 1\n}'


def test_invoke_json_errors(fake_llm):
    fake_llm("")
    with pytest.raises(FlowError, match="vazia"):
        invoke_json("prompt", CarrierGuess, empty_message="vazia")

    fake_llm("not json")
    with pytest.raises(FlowError, match="^vazia$"):
        invoke_json("prompt", CarrierGuess, empty_message="vazia")

    fake_llm({"other": 1})
    with pytest.raises(FlowError, match=r"vazia \(1 campos inválidos\)"):
        invoke_json("prompt", CarrierGuess, empty_message="vazia")

    fake_llm(RuntimeError("quota"))
    with pytest.raises(FlowError, match="LLM call failed: quota"):
        invoke_json("prompt", CarrierGuess)


def test_extract_partner_info(fake_llm):
    llm = fake_llm(
        '```json\n{"name": "Nova Trading", "contacts": [{"name": "Rita", "departments": ["Financeiro"]}]}\n```'
    )

    info = extract_partner_info("Nova Trading, Rita (financeiro)")

    assert info["name"] == "Nova Trading"
    assert info["contacts"][0]["departments"] == ["Financeiro"]
    assert info["address"]["city"] == ""
    assert "Nova Trading, Rita (financeiro)" in llm.last_prompt
    with pytest.raises(FlowError, match="Nenhum texto"):
        extract_partner_info("   ")


def test_extract_rates_from_text_and_image(fake_llm):
    llm = fake_llm({"rates": [RATE]})

    assert extract_rates(text="Santos x Rotterdam USD 2500 40HC") == [RATE]
    assert "Content:\nSantos x Rotterdam" in llm.last_prompt

    extract_rates(file_data_uri=_data_uri(b"\x89PNG", "image/png"), file_name="tabela.PNG")
    parts = llm.prompts[-1]
    assert parts[1]["image_url"]["url"].startswith("data:image/png;base64,")
    assert "attached image" in parts[0]["text"]


def test_extract_rates_failures(fake_llm):
    with pytest.raises(FlowError, match="Nenhum texto ou arquivo"):
        extract_rates(text=" ")

    fake_llm({"rates": []})
    with pytest.raises(FlowError, match="nenhuma tarifa válida"):
        extract_rates(text="sem tarifas")


def test_extract_quote_details_omits_unknown_fields(fake_llm):
    fake_llm({"modal": "ocean", "origin": "Santos, BR", "oceanShipment": {"containers": [{"type": "40'HC"}]}})

    details = extract_quote_details("2x40hc Santos")

    assert details == {
        "modal": "ocean",
        "origin": "Santos, BR",
        "oceanShipment": {"containers": [{"type": "40'HC", "quantity": 1}]},
    }


def test_crm_and_task_monitoring(fake_llm):
    fake_llm(
        {
            "contactName": "Rita",
            "companyName": "Nova",
            "emailAddress": "rita@nova.com",
            "summary": "Pede cotação",
            "priority": "high",
        },
        {"taskDetected": True, "taskDescription": "Pagar fatura", "isFinancial": True},
    )

    assert create_crm_entry("email")["priority"] == "high"
    analysis = monitor_email_for_tasks("Pague até sexta", "Fatura", "fin@nova.com")
    assert analysis["isFinancial"] is True
    assert analysis["reminderNeeded"] is False


def test_extract_invoice_items_from_csv(fake_llm):
    llm = fake_llm({"items": [{"descricao": "Peça", "quantidade": 2, "valorUnitarioUSD": 5, "ncm": "84713012", "pesoKg": 1}]})
    csv = "descricao,qtd,valor\nPeça,2,10\n,,\n".encode("utf-8")

    items = extract_invoice_items(_data_uri(csv, "text/csv"), "itens.csv")

    assert items[0]["valorUnitarioUSD"] == 5
    assert "Peça\t2\t10" in llm.last_prompt
    with pytest.raises(FlowError, match="Unsupported file type"):
        extract_invoice_items(_data_uri(b"x"), "itens.pdf")


def test_ncm_rates_normalises_code(fake_llm):
    fake_llm({"ncm": "0", "ii": 16, "ipi": 15, "pis": 2.1, "cofins": 9.65})

    assert get_ncm_rates("8517.12.31")["ncm"] == "85171231"
    with pytest.raises(FlowError, match="8 dígitos"):
        get_ncm_rates("8517")


@pytest.mark.parametrize(
    "number, carrier",
    [
        ("MAEU123456", "Maersk"),
        ("mscu7654321", "MSC"),
        ("HLCU1234567", "Hapag-Lloyd"),
        ("123456789", "Maersk"),
        ("1234567890", "Hapag-Lloyd"),
        ("ABC123", None),
    ],
)
def test_carrier_from_prefix(number, carrier):
    assert carrier_from_prefix(number) == carrier


def test_detect_carrier_asks_model_for_unknown_formats(fake_llm):
    llm = fake_llm({"carrier": "ZIM"})

    assert detect_carrier("MAEU1") == {"carrier": "Maersk"}
    assert llm.prompts == []
    assert detect_carrier("XYZ999") == {"carrier": "ZIM"}
    assert "XYZ999" in llm.last_prompt


def test_generate_di_xml(fake_llm):
    llm = fake_llm({"xml": "<ListaDeclaracoesTransmissao/>"}, {"xml": " "})

    result = generate_di_xml_from_spreadsheet([{"ncm": "84713012"}], {"id": "PROC-1"})
    assert result == {"xml": "<ListaDeclaracoesTransmissao/>"}
    assert '"id": "PROC-1"' in llm.last_prompt
    with pytest.raises(FlowError, match="não conseguiu gerar o XML"):
        generate_di_xml_from_spreadsheet([], {})


def test_file_inputs():
    assert decode_data_uri(_data_uri(b"abc")) == b"abc"
    with pytest.raises(FlowError, match="Invalid Data URI"):
        decode_data_uri("data:text/plain;base64")

    eml = b"Subject: Tarifas\r\nContent-Type: text/plain; charset=utf-8\r\n\r\nUSD 2500 Santos\r\n"
    assert email_text(eml).strip() == "USD 2500 Santos"
    assert prompt_input_from_file(_data_uri(b"<a/>"), "nota.xml") == ("<a/>", None)
    with pytest.raises(FlowError, match="Unsupported file type"):
        prompt_input_from_file(_data_uri(b"x"), "planilha.doc")
    with pytest.raises(FlowError, match="empty"):
        prompt_input_from_file(_data_uri(b",,\n,,\n"), "vazia.csv")


def test_send_quote_language_and_whatsapp_template(fake_llm):
    answer = {"emailSubject": "s", "emailBody": "<p>b</p>", "whatsappMessage": "w"}
    llm = fake_llm(answer)

    assert send_quote("Nexus", "COT-1", RATE, "https://a", "https://r") == answer
    assert "MUST be in Portuguese" in llm.last_prompt
    assert "Sua cotação de frete (COT-1) está pronta. De Santos, BR para Roterdã, NL" in llm.last_prompt

    send_quote("Agent", "FAT-1", {"finalPrice": "USD 10"}, "https://a", "https://r", is_client_agent=True, is_invoice=True)
    assert "Your invoice (FAT-1) for USD 10 is available" in llm.last_prompt
    assert "Service Invoice" in llm.last_prompt


def test_build_shipment_details():
    ocean = {"modal": "ocean", "oceanShipmentType": "FCL", "oceanShipment": {"containers": [{"type": "40'HC", "quantity": 2}]}}
    assert build_shipment_details(ocean) == (
        "Mode of Transport: Ocean\nShipment Type: FCL\nContainers:\n- 2 x 40'HC"
    )

    air = {"modal": "air", "airShipment": {"pieces": [{"quantity": 1, "length": 50, "width": 40, "height": 30, "weight": 12}], "isStackable": True}}
    assert build_shipment_details(air).splitlines() == [
        "Mode of Transport: Air",
        "Pieces:",
        "- 1 piece(s), 50x40x30 cm, 12 kg each.",
        "Is Stackable: Yes",
    ]


def test_request_agent_quote_includes_ready_date(fake_llm):
    llm = fake_llm({"emailSubject": "Rate Request", "emailBody": "<p>Dear Agent,</p>"})

    request_agent_quote(
        {"origin": "Santos", "destination": "Miami", "modal": "ocean", "incoterm": "FOB", "departureDate": "2024-08-01T00:00:00"}
    )

    assert "Cargo Ready Date: 2024-08-01" in llm.last_prompt


def test_campaign_targets_route_customers(fake_llm):
    fake_llm({"emailSubject": "Oferta", "emailBody": "<p>Olá,</p>"})
    quotes = initial_quotes()

    assert find_relevant_clients("Promoção de Santos para Roterdã", [], quotes) == ["Nexus Imports"]
    assert find_relevant_clients("Santos x Roterdã", [{"origin": "Santos, BR", "destination": "Roterdã, NL", "customer": "Nexus Imports"}], []) == ["Nexus Imports"]
    assert find_relevant_clients("Promoção imperdível", [], quotes) == []

    campaign = create_email_campaign("Promoção de Santos para Roterdã", [], quotes)
    assert campaign == {"clients": ["Nexus Imports"], "emailSubject": "Oferta", "emailBody": "<p>Olá,</p>"}


def test_share_simulation_formats_total(fake_llm):
    llm = fake_llm({"emailSubject": "s", "emailBody": "b", "whatsappMessage": "w"})

    share_simulation("Nexus", "Importação A", 7562.5, "https://sim")

    assert "R$ 7.562,50" in llm.last_prompt


def test_configured_model_follows_app_config(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_MODEL", "from-env")
    assert configured_model() == "from-env"

    app = create_app(
        AppConfig(database_url=f"sqlite:///{tmp_path / 'llm.db'}", secret_key="x", llm_model="gpt-4.1")
    )
    with app.app_context():
        assert configured_model() == "gpt-4.1"
