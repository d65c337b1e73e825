"""Received NFS-e lookup against the Itajaí city hall SOAP webservice.

The request body is the ``ConsultaNfseRecebidaEnvio`` document wrapped in a
SOAP 1.1 envelope and posted to the ``Consultas`` endpoint. The answer is
flattened into plain dictionaries, one per ``CompNfse`` element.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Dict, Optional
from xml.etree.ElementTree import Element, ParseError, SubElement, fromstring, tostring

import requests

from . import IntegrationError, resolve_session

logger = logging.getLogger(__name__)

SERVICE_URL = "http://nfse-teste.publica.inf.br/homologa_nfse_integracao/Consultas"
NFSE_NAMESPACE = "http://www.publica.inf.br"
SOAP_NAMESPACE = "http://schemas.xmlsoap.org/soap/envelope/"
SOAP_ACTION = "ConsultarNfseRecebidas"
REQUEST_TIMEOUT = 30


def build_consulta_xml(cnpj: str, start: date, end: date, page: int = 1) -> str:
    """Raise ``ValueError`` for a malformed CNPJ or an inverted period."""

    if not re.fullmatch(r"\d{14}", cnpj):
        raise ValueError("O CNPJ do tomador deve conter 14 dígitos.")
    if end < start:
        raise ValueError("A data final deve ser posterior à data inicial.")
    if page < 1:
        raise ValueError("A página deve ser maior que zero.")

    root = Element("ConsultaNfseRecebidaEnvio", xmlns=NFSE_NAMESPACE)
    consulta = SubElement(root, "ConsultaNfseRecebida")
    tomador = SubElement(SubElement(consulta, "IdentificacaoTomador"), "CpfCnpj")
    SubElement(tomador, "Cnpj").text = cnpj
    periodo = SubElement(consulta, "PeriodoEmissao")
    SubElement(periodo, "DataInicial").text = start.isoformat()
    SubElement(periodo, "DataFinal").text = end.isoformat()
    SubElement(consulta, "Pagina").text = str(page)
    return tostring(root, encoding="unicode")


def build_envelope(payload_xml: str) -> str:
    envelope = Element("soapenv:Envelope", {"xmlns:soapenv": SOAP_NAMESPACE})
    body = SubElement(envelope, "soapenv:Body")
    call = SubElement(body, SOAP_ACTION, xmlns=NFSE_NAMESPACE)
    SubElement(call, "xml").text = payload_xml
    return tostring(envelope, encoding="unicode")


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _flatten(element: Element) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for child in element:
        key = _local(child.tag)
        value: Any = _flatten(child) if len(child) else (child.text or "").strip()
        if key in result:
            if not isinstance(result[key], list):
                result[key] = [result[key]]
            result[key].append(value)
        else:
            result[key] = value
    return result


def parse_consulta_response(text: str) -> Dict[str, Any]:
    """Extract invoices and messages from the SOAP answer.

    The service returns its document either inline or as escaped text inside
    the ``return`` element; both forms are accepted.
    """

    try:
        root = fromstring(text)
    except ParseError as exc:
        raise IntegrationError(f"Failed to consult NFS-e: invalid XML response ({exc})") from exc

    for element in root.iter():
        if _local(element.tag) == "Fault":
            fault = _flatten(element)
            raise IntegrationError(
                f"Failed to consult NFS-e: {fault.get('faultstring', 'SOAP fault')}"
            )
        if len(element) == 0 and (element.text or "").lstrip().startswith("<"):
            return parse_consulta_response(element.text.strip())

    invoices = [_flatten(e) for e in root.iter() if _local(e.tag) == "CompNfse"]
    messages = [_flatten(e) for e in root.iter() if _local(e.tag) == "MensagemRetorno"]
    return {"notas": invoices, "mensagens": messages}


class NfseClient:
    def __init__(self, url: str = SERVICE_URL, *, session: Optional[requests.Session] = None):
        self._url = url
        self._session = resolve_session(session)

    def consult_received(
        self, cnpj: str, start: date, end: date, page: int = 1
    ) -> Dict[str, Any]:
        """Received invoices for the service taker ``cnpj`` in a period.

        Raises:
            ValueError: Invalid input.
            IntegrationError: Transport failures, SOAP faults and unreadable
                responses.
        """

        envelope = build_envelope(build_consulta_xml(cnpj, start, end, page))
        logger.info("Starting NFS-e consultation for CNPJ: %s", cnpj)
        try:
            response = self._session.post(
                self._url,
                data=envelope.encode("utf-8"),
                headers={
                    "Content-Type": "text/xml; charset=utf-8",
                    "SOAPAction": SOAP_ACTION,
                },
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise IntegrationError(f"Failed to consult NFS-e: {exc}") from exc
        if not response.ok and "Fault" not in response.text:
            logger.error("NFS-e webservice returned %s: %s", response.status_code, response.text)
            raise IntegrationError(f"Failed to consult NFS-e: HTTP {response.status_code}")
        return parse_consulta_response(response.text)


__all__ = [
    "NfseClient",
    "build_consulta_xml",
    "build_envelope",
    "parse_consulta_response",
]
