"""Tests for the messaging, courier, tax, rate and carrier adapters."""

from __future__ import annotations

import random
from datetime import date, datetime
from xml.etree.ElementTree import fromstring

import pytest

from carga_common.partners import Partner, initial_partners
from carga_common.rates import initial_quotes
from carga_common.shipments import create_shipment_from_quote
from carga_web.integrations import IntegrationError
from carga_web.integrations.carriers import (
    HapagLloydClient,
    MaerskClient,
    get_booking_info,
    get_tracking_info,
)
from carga_web.integrations.freight_rates import (
    get_air_freight_rates,
    get_freight_rates,
    split_locations,
)
from carga_web.integrations.nfse import (
    NfseClient,
    build_consulta_xml,
    build_envelope,
    parse_consulta_response,
)
from carga_web.integrations.schedules import ScheduleClient
from carga_web.integrations.shipengine import ShipEngineClient, build_rate_request
from carga_web.integrations.siscomex import SiscomexClient
from carga_web.integrations.twilio import TwilioWhatsAppClient, whatsapp_address


def _nexus() -> Partner:
    return Partner.from_dict(initial_partners()[0])


def test_whatsapp_message(make_response, make_session):
    session = make_session(post=[make_response(201, {"sid": "SM123"})])
    client = TwilioWhatsAppClient("AC1", "token", "+14155238886", session=session)

    assert client.send_message("+5511912345678", "Olá") == {"sid": "SM123", "status": "success"}
    _, url, kwargs = session.calls[0]
    assert url.endswith("/Accounts/AC1/Messages.json")
    assert kwargs["data"]["To"] == "whatsapp:+5511912345678"
    assert kwargs["auth"] == ("AC1", "token")
    assert whatsapp_address("whatsapp:+1") == "whatsapp:+1"


def test_whatsapp_errors(make_response, make_session):
    with pytest.raises(IntegrationError, match="TWILIO_ACCOUNT_SID"):
        TwilioWhatsAppClient(None, None, None, session=make_session()).send_message("+1", "x")

    session = make_session(post=[make_response(400, {"message": "Invalid To number"})])
    client = TwilioWhatsAppClient("AC1", "token", "+1", session=session)
    with pytest.raises(IntegrationError, match="Invalid To number"):
        client.send_message("+2", "x")


def test_courier_rate_request_uses_first_contact():
    request = build_rate_request(_nexus(), [{"weight": 2, "length": 30, "width": 20, "height": 10}])

    ship_to = request["shipment"]["ship_to"]
    assert ship_to["name"] == "João da Silva"
    assert ship_to["phone"] == "5511912345678"
    assert ship_to["postal_code"] == "01001000"
    assert ship_to["country_code"] == "BR"
    assert request["shipment"]["packages"][0]["weight"] == {"value": 2, "unit": "kilogram"}


def test_courier_rates(make_response, make_session):
    rate = {
        "rate_id": "se-1",
        "carrier_friendly_name": "FedEx",
        "carrier_code": "fedex",
        "service_type": "International Priority",
        "delivery_days": 3,
        "shipping_amount": {"currency": "usd", "amount": 100.0},
        "insurance_amount": {"currency": "usd", "amount": 5.5},
        "other_amount": {"currency": "usd", "amount": 0},
    }
    session = make_session(
        post=[make_response(200, {"rate_response": {"status": "completed", "rates": [rate]}})]
    )

    rates = ShipEngineClient("key", session=session).get_courier_rates(_nexus(), [{"weight": 1}])

    assert rates[0]["cost"] == "usd 105.50"
    assert rates[0]["costValue"] == pytest.approx(105.5)
    assert rates[0]["dataAiHint"] == "fedex logo"


def test_courier_rate_errors(make_response, make_session):
    with pytest.raises(IntegrationError, match="not configured"):
        ShipEngineClient(None, session=make_session()).get_courier_rates(_nexus(), [])

    session = make_session(
        post=[make_response(400, {"errors": [{"message": "Invalid postal code"}]})]
    )
    with pytest.raises(IntegrationError, match=r"\(400\): Invalid postal code"):
        ShipEngineClient("key", session=session).get_courier_rates(_nexus(), [])


def test_nfse_request_document():
    xml = build_consulta_xml("12345678000190", date(2024, 6, 1), date(2024, 6, 30))

    root = fromstring(xml)
    assert root.find(".//{http://www.publica.inf.br}Cnpj").text == "12345678000190"
    assert root.find(".//{http://www.publica.inf.br}DataFinal").text == "2024-06-30"
    assert "ConsultarNfseRecebidas" in build_envelope(xml)

    with pytest.raises(ValueError, match="14 dígitos"):
        build_consulta_xml("123", date(2024, 6, 1), date(2024, 6, 30))
    with pytest.raises(ValueError, match="posterior"):
        build_consulta_xml("12345678000190", date(2024, 6, 30), date(2024, 6, 1))


NFSE_RESPONSE = """<?xml version="1.0"?>
<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">
  <soap:Body>
    <ConsultarNfseRecebidasResponse xmlns="http://www.publica.inf.br">
      <ConsultaNfseRecebidaResposta>
        <ListaNfse>
          <CompNfse><Nfse><InfNfse><Numero>101</Numero><ValorServicos>1500.00</ValorServicos></InfNfse></Nfse></CompNfse>
          <CompNfse><Nfse><InfNfse><Numero>102</Numero><ValorServicos>80.00</ValorServicos></InfNfse></Nfse></CompNfse>
        </ListaNfse>
      </ConsultaNfseRecebidaResposta>
    </ConsultarNfseRecebidasResponse>
  </soap:Body>
</soap:Envelope>"""


def test_nfse_consultation(make_response, make_session):
    session = make_session(post=[make_response(200, text=NFSE_RESPONSE)])

    result = NfseClient(session=session).consult_received(
        "12345678000190", date(2024, 6, 1), date(2024, 6, 30)
    )

    assert [n["Nfse"]["InfNfse"]["Numero"] for n in result["notas"]] == ["101", "102"]
    assert result["mensagens"] == []
    assert session.calls[0][2]["headers"]["SOAPAction"] == "ConsultarNfseRecebidas"


def test_nfse_escaped_payload_and_fault():
    escaped = (
        "<Envelope><Body><return>"
        "&lt;Resposta&gt;&lt;MensagemRetorno&gt;&lt;Codigo&gt;E10&lt;/Codigo&gt;"
        "&lt;/MensagemRetorno&gt;&lt;/Resposta&gt;"
        "</return></Body></Envelope>"
    )
    assert parse_consulta_response(escaped) == {"notas": [], "mensagens": [{"Codigo": "E10"}]}

    fault = "<Envelope><Body><Fault><faultstring>Acesso negado</faultstring></Fault></Body></Envelope>"
    with pytest.raises(IntegrationError, match="Acesso negado"):
        parse_consulta_response(fault)
    with pytest.raises(IntegrationError, match="invalid XML"):
        parse_consulta_response("not xml")


def test_ocean_rates_cover_every_pair_cheapest_first():
    form = {
        "origin": "Santos, Itajaí",
        "destination": "Roterdã",
        "oceanShipment": {"containers": [{"type": "40'HC", "quantity": 1}]},
    }

    rates = get_freight_rates(form, rng=random.Random(1))

    assert len(rates) == 6
    assert [r["costValue"] for r in rates] == sorted(r["costValue"] for r in rates)
    assert all(3600 <= r["costValue"] <= 4100 for r in rates)
    assert {r["origin"] for r in rates} == {"Santos", "Itajaí"}
    assert split_locations(" a, ,b ") == ["a", "b"]


def test_air_rates_are_priced_per_kg():
    rates = get_air_freight_rates({"origin": "Xangai (China)", "destination": "GRU"}, rng=random.Random(2))

    assert len(rates) == 3
    assert all(7.0 <= r["costValue"] <= 8.5 for r in rates)
    assert rates[0]["cost"].endswith("/kg")


def test_siscomex_declarations():
    clock = lambda: datetime(2024, 6, 1, 12, 0)  # noqa: E731
    client = SiscomexClient(rng=random.Random(3), clock=clock)

    due = client.register_due({"exporterCnpj": "12.345.678/0001-90"})
    assert due["success"] is True
    assert due["dueNumber"].startswith("24BR")
    assert len(due["dueNumber"]) == 14
    assert client.authenticate() is client.authenticate()

    assert client.register_duimp({"importer": "Nexus"})["duimpNumber"].startswith("24BR")
    with pytest.raises(ValueError, match="CNPJ do exportador inválido."):
        client.register_due({"exporterCnpj": "123"})


def test_simulated_tracking_info():
    info = get_tracking_info("MSKU1234567")

    details = info["shipmentDetails"]
    assert details["vesselName"] == "MAERSK SEOUL"
    assert len(info["events"]) == 12
    assert info["status"] == "Delivered to consignee"
    assert sum(m["isTransshipment"] for m in details["milestones"]) == 3

    with pytest.raises(IntegrationError):
        get_tracking_info("fail-123")


MAERSK_DETAIL = {
    "shipments": [
        {
            "carrierBookingReference": "BKG777",
            "transportDocumentReference": "MAEU777",
            "transportPlan": [
                {
                    "transportLeg": {
                        "sequenceNumber": 1,
                        "origin": {"locationName": "Santos"},
                        "destination": {"locationName": "Rotterdam"},
                        "vessel": {"vesselName": "MAERSK PICO"},
                        "voyageReference": "428N",
                        "departure": {"eventDateTime": "2024-07-25T12:00:00Z"},
                        "arrival": {"eventDateTime": "2024-08-20T12:00:00Z"},
                    }
                }
            ],
            "events": [
                {
                    "eventDescription": "Vessel departure",
                    "eventDateTime": "2024-07-25T12:00:00Z",
                    "eventLocation": {"locationName": "Santos"},
                    "eventClassifierCode": "ACT",
                },
                {
                    "eventDescription": "Gate in",
                    "eventDateTime": "2024-07-20T08:00:00Z",
                    "eventLocation": {"locationName": "Santos"},
                    "eventClassifierCode": "ACT",
                },
                {
                    "eventDescription": "Vessel arrival",
                    "eventDateTime": "2024-08-20T12:00:00Z",
                    "eventClassifierCode": "EST",
                },
            ],
        }
    ]
}


def test_maersk_two_step_lookup(make_response, make_session):
    session = make_session(
        get=[
            make_response(200, {"shipments": [{"transportDocumentId": "DOC-1"}]}),
            make_response(200, MAERSK_DETAIL),
        ]
    )

    result = MaerskClient("key", session=session).get_tracking("BKG777")

    assert session.calls[1][1].endswith("/v2/tracking/shipments/DOC-1")
    assert [e["status"] for e in result["events"]] == ["Gate in", "Vessel departure", "Vessel arrival"]
    assert result["status"] == "Vessel departure"
    details = result["shipmentDetails"]
    assert details["origin"] == "Santos"
    assert details["destination"] == "Rotterdam"
    assert details["etd"] == "2024-07-25T12:00:00"
    assert result["events"][2]["location"] == "Unknown Location"


def test_maersk_errors(make_response, make_session):
    with pytest.raises(IntegrationError, match="não está configurada"):
        MaerskClient(None, session=make_session()).get_tracking("BKG")

    session = make_session(get=[make_response(401, {})])
    with pytest.raises(IntegrationError, match="Status 401"):
        MaerskClient("key", session=session).get_tracking("BKG")

    session = make_session(get=[make_response(200, {"shipments": []})])
    with pytest.raises(IntegrationError, match="Nenhum embarque encontrado"):
        MaerskClient("key", session=session).get_tracking("BKG")


def test_booking_info_merges_carrier_data(make_response, make_session):
    quote = next(q for q in initial_quotes() if q["id"] == "COT-01832")
    shipment = create_shipment_from_quote(quote)
    customer = shipment.customer
    session = make_session(
        get=[
            make_response(200, {"shipments": [{"transportDocumentId": "DOC-1"}]}),
            make_response(200, MAERSK_DETAIL),
        ]
    )

    merged = get_booking_info(
        "BKG777", "Maersk", shipment, maersk=MaerskClient("key", session=session)
    )

    assert merged is shipment
    assert merged.customer == customer
    assert merged.vessel_name == "MAERSK PICO"
    assert merged.master_bill_number == "MAEU777"
    assert [m.name for m in merged.milestones][0] == "Gate in"

    hapag = get_booking_info("BKG1", "Hapag-Lloyd", shipment, hapag=HapagLloydClient())
    assert hapag.vessel_name == "MAERSK PICO"

    with pytest.raises(IntegrationError, match="not supported"):
        get_booking_info("BKG1", "Evergreen", shipment)


def test_schedules_fall_back_to_simulated_data(make_response, make_session):
    assert ScheduleClient(None, None).vessel_schedules("Santos", "Roterdã")[0]["vesselName"] == (
        "MAERSK PICO"
    )

    session = make_session(get=[make_response(500, {}), make_response(200, [{"bad": 1}])])
    client = ScheduleClient("key", "org", session=session)
    assert len(client.vessel_schedules("Santos", "Roterdã")) == 5
    assert len(client.flight_schedules("GRU", "MIA")) == 4


def test_schedules_from_api(make_response, make_session):
    flight = {
        "flightNumber": "LA1",
        "carrier": "LATAM Cargo",
        "etd": "2024-07-25T22:30:00Z",
        "eta": "2024-07-26T07:00:00Z",
        "transitTime": "8h 30m",
        "aircraft": "Boeing 777F",
    }
    session = make_session(get=[make_response(200, [flight])])

    schedules = ScheduleClient("key", "org", session=session).flight_schedules("GRU", "MIA")

    assert schedules == [flight]
    assert session.calls[0][2]["params"] == {"origin": "GRU", "destination": "MIA"}
