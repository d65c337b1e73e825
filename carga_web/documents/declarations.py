"""Customs and tax XML documents built with :mod:`xml.etree`."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Mapping, Optional
from xml.etree.ElementTree import Element, SubElement, indent, tostring

DI_NAMESPACE = "http://www.receita.fazenda.gov.br/siscomex/di"
NFSE_NAMESPACE = "http://www.publica.inf.br"
CODIGO_CNAE = "5250804"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


def _text(parent: Element, tag: str, value: Any) -> Element:
    child = SubElement(parent, tag)
    child.text = "" if value is None else str(value)
    return child


def _serialize(root: Element) -> str:
    indent(root, space="  ")
    return XML_DECLARATION + tostring(root, encoding="unicode")


def _amount(value: Any, places: int = 2) -> str:
    return f"{float(value or 0):.{places}f}"


def build_di_xml(data: Mapping[str, Any], now: Optional[datetime] = None) -> str:
    """Serialise an import declaration (DI).

    ``data`` uses the request keys ``diNumber``, ``importerCnpj``,
    ``representativeCnpj``, ``hblNumber``, ``mblNumber``, ``totalValueBRL``,
    ``totalFreightUSD``, ``totalInsuranceUSD`` and ``additions`` (each with
    ``ncm``, ``description``, ``quantity``, ``unit`` and ``value``).
    """

    registered = (now or datetime.now()).strftime("%Y-%m-%dT%H:%M:%S")
    root = Element("di", xmlns=DI_NAMESPACE)
    header = SubElement(root, "cabecalho")
    _text(header, "numero", data.get("diNumber"))
    _text(header, "dataRegistro", registered)
    _text(SubElement(root, "importador"), "cnpj", data.get("importerCnpj"))
    _text(SubElement(root, "representante"), "cnpj", data.get("representativeCnpj"))
    cargo = SubElement(root, "carga")
    _text(cargo, "mbl", data.get("mblNumber"))
    _text(cargo, "hbl", data.get("hblNumber"))
    values = SubElement(root, "valores")
    _text(values, "totalBRL", _amount(data.get("totalValueBRL")))
    _text(values, "freteUSD", _amount(data.get("totalFreightUSD")))
    _text(values, "seguroUSD", _amount(data.get("totalInsuranceUSD")))
    additions = SubElement(root, "adicoes")
    for number, item in enumerate(data.get("additions") or [], start=1):
        addition = SubElement(additions, "adicao", numero=str(number))
        _text(addition, "ncm", item.get("ncm"))
        _text(addition, "descricao", item.get("description"))
        _text(addition, "quantidade", item.get("quantity"))
        _text(addition, "unidade", item.get("unit"))
        _text(addition, "valor", _amount(item.get("value")))
    return _serialize(root)


def build_nfse_rps_xml(data: Mapping[str, Any], now: Optional[datetime] = None) -> str:
    """``EnviarLoteRpsEnvio`` batch with a single RPS, ready for signing.

    Raises:
        ValueError: When the RPS number or batch id is not a positive integer.
    """

    prestador = data.get("prestador") or {}
    rps = data.get("rps") or {}
    tomador = data.get("tomador") or {}
    servico = data.get("servico") or {}
    numero = int(rps.get("numero") or 0)
    lote_id = int(rps.get("loteId") or 0)
    if numero < 1 or lote_id < 1:
        raise ValueError("Número do RPS e do lote devem ser positivos.")

    root = Element("EnviarLoteRpsEnvio", xmlns=NFSE_NAMESPACE)
    lote = SubElement(root, "LoteRps")
    _text(lote, "NumeroLote", lote_id)
    _text(lote, "Cnpj", prestador.get("cnpj"))
    _text(lote, "InscricaoMunicipal", prestador.get("inscricaoMunicipal"))
    _text(lote, "QuantidadeRps", 1)
    inf = SubElement(SubElement(SubElement(lote, "ListaRps"), "Rps"), "InfRps", Id=f"RPS{numero}")

    ident = SubElement(inf, "IdentificacaoRps")
    _text(ident, "Numero", numero)
    _text(ident, "Serie", rps.get("serie") or "1")
    _text(ident, "Tipo", rps.get("tipo") or "1")
    _text(inf, "DataEmissao", (now or datetime.now()).strftime("%Y-%m-%dT%H:%M:%S"))
    _text(inf, "NaturezaOperacao", data.get("naturezaOperacao") or "1")
    _text(inf, "OptanteSimplesNacional", data.get("optanteSimplesNacional") or "2")
    _text(inf, "IncentivadorCultural", 2)
    _text(inf, "Status", 1)

    service = SubElement(inf, "Servico")
    values = SubElement(service, "Valores")
    _text(values, "ValorServicos", _amount(servico.get("valorServicos")))
    for tag in ("ValorDeducoes", "ValorPis", "ValorCofins", "ValorInss", "ValorIr", "ValorCsll"):
        _text(values, tag, "0.00")
    _text(values, "IssRetido", servico.get("issRetido") or "2")
    _text(values, "ValorIss", _amount(servico.get("valorIss")))
    _text(values, "OutrasRetencoes", "0.00")
    _text(values, "Aliquota", _amount(servico.get("aliquota"), 4))
    _text(values, "DescontoIncondicionado", "0.00")
    _text(values, "DescontoCondicionado", "0.00")
    _text(service, "ItemListaServico", servico.get("itemListaServico"))
    _text(service, "CodigoCnae", CODIGO_CNAE)
    _text(service, "Discriminacao", servico.get("discriminacao"))
    _text(service, "CodigoMunicipio", servico.get("codigoMunicipioPrestacao"))

    provider = SubElement(inf, "Prestador")
    _text(provider, "Cnpj", prestador.get("cnpj"))
    _text(provider, "InscricaoMunicipal", prestador.get("inscricaoMunicipal"))

    taker = SubElement(inf, "Tomador")
    document = re.sub(r"\D", "", str(tomador.get("cpfCnpj", "")))
    cpf_cnpj = SubElement(SubElement(taker, "IdentificacaoTomador"), "CpfCnpj")
    _text(cpf_cnpj, "Cpf" if len(document) == 11 else "Cnpj", document)
    _text(taker, "RazaoSocial", tomador.get("razaoSocial"))
    address = SubElement(taker, "Endereco")
    _text(address, "Endereco", tomador.get("endereco"))
    for key, tag in (
        ("numero", "Numero"),
        ("bairro", "Bairro"),
        ("codigoMunicipio", "CodigoMunicipio"),
        ("uf", "Uf"),
        ("cep", "Cep"),
    ):
        _text(address, tag, tomador.get(key))
    return _serialize(root)


__all__ = ["DI_NAMESPACE", "NFSE_NAMESPACE", "build_di_xml", "build_nfse_rps_xml"]
