"""Business partners: clients, suppliers, overseas agents and commission earners.

Partners are stored as JSON documents. Only the fields the back office reasons
about are typed here; everything else travels in ``extras`` so a round trip
never drops data entered through the portal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

ROLES = ("cliente", "fornecedor", "agente", "comissionado")
CONTACT_DEPARTMENTS = (
    "Comercial",
    "Operacional",
    "Financeiro",
    "Importação",
    "Exportação",
    "Despachante",
    "Outro",
)
PROFIT_AGREEMENT_UNITS = ("por_container", "por_bl", "porcentagem_lucro")
COMMISSION_UNITS = ("porcentagem_lucro", "por_container", "por_bl")


@dataclass(slots=True)
class Contact:
    name: str
    email: str
    phone: str
    departments: List[str] = field(default_factory=list)
    despachante_id: Optional[int] = None
    login_email: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Contact":
        despachante = payload.get("despachanteId")
        return cls(
            name=str(payload.get("name", "")),
            email=str(payload.get("email", "")),
            phone=str(payload.get("phone", "")),
            departments=[str(d) for d in payload.get("departments") or []],
            despachante_id=int(despachante) if despachante not in (None, "") else None,
            login_email=payload.get("loginEmail") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "departments": list(self.departments),
        }
        if self.despachante_id is not None:
            payload["despachanteId"] = self.despachante_id
        if self.login_email:
            payload["loginEmail"] = self.login_email
        return payload


@dataclass(slots=True)
class CommissionAgreement:
    """What a commission earner receives on shipments of the listed clients.

    ``porcentagem_lucro`` takes ``amount`` percent of the shipment profit;
    the other units pay ``amount`` flat per shipment.
    """

    amount: Optional[Decimal] = None
    unit: Optional[str] = None
    currency: str = "BRL"
    commission_clients: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CommissionAgreement":
        amount = payload.get("amount")
        return cls(
            amount=Decimal(str(amount).replace(",", ".")) if amount not in (None, "") else None,
            unit=payload.get("unit") or None,
            currency=str(payload.get("currency") or "BRL"),
            commission_clients=[str(c) for c in payload.get("commissionClients") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "currency": self.currency,
            "commissionClients": list(self.commission_clients),
        }
        if self.amount is not None:
            payload["amount"] = float(self.amount)
        if self.unit:
            payload["unit"] = self.unit
        return payload


_PARTNER_KEYS = {
    "id",
    "name",
    "nomeFantasia",
    "roles",
    "tipoCliente",
    "tipoFornecedor",
    "tipoAgente",
    "cnpj",
    "scac",
    "paymentTerm",
    "exchangeRateAgio",
    "address",
    "contacts",
    "commissionAgreement",
    "clientsLinked",
}


@dataclass(slots=True)
class Partner:
    """Registered company and its contacts."""

    id: Optional[int]
    name: str
    roles: Dict[str, bool] = field(default_factory=dict)
    nome_fantasia: Optional[str] = None
    tipo_cliente: Dict[str, bool] = field(default_factory=dict)
    tipo_fornecedor: Dict[str, bool] = field(default_factory=dict)
    tipo_agente: Dict[str, bool] = field(default_factory=dict)
    cnpj: Optional[str] = None
    scac: Optional[str] = None
    payment_term: Optional[int] = None
    exchange_rate_agio: Decimal = Decimal("0")
    address: Dict[str, Any] = field(default_factory=dict)
    contacts: List[Contact] = field(default_factory=list)
    clients_linked: Optional[List[str]] = None
    commission_agreement: Optional[CommissionAgreement] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def has_role(self, role: str) -> bool:
        return bool(self.roles.get(role))

    @property
    def is_despachante(self) -> bool:
        return bool(self.tipo_fornecedor.get("despachante"))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Partner":
        term = payload.get("paymentTerm")
        return cls(
            id=int(payload["id"]) if payload.get("id") is not None else None,
            name=str(payload.get("name", "")),
            nome_fantasia=payload.get("nomeFantasia"),
            roles={role: bool((payload.get("roles") or {}).get(role)) for role in ROLES},
            tipo_cliente=dict(payload.get("tipoCliente") or {}),
            tipo_fornecedor=dict(payload.get("tipoFornecedor") or {}),
            tipo_agente=dict(payload.get("tipoAgente") or {}),
            cnpj=payload.get("cnpj"),
            scac=payload.get("scac"),
            payment_term=int(term) if term not in (None, "") else None,
            exchange_rate_agio=Decimal(str(payload.get("exchangeRateAgio") or 0)),
            address=dict(payload.get("address") or {}),
            contacts=[Contact.from_dict(c) for c in payload.get("contacts") or []],
            clients_linked=payload.get("clientsLinked"),
            commission_agreement=(
                CommissionAgreement.from_dict(payload["commissionAgreement"])
                if payload.get("commissionAgreement")
                else None
            ),
            extras={k: v for k, v in payload.items() if k not in _PARTNER_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extras)
        payload.update(
            {
                "id": self.id,
                "name": self.name,
                "roles": dict(self.roles),
                "address": dict(self.address),
                "contacts": [c.to_dict() for c in self.contacts],
                "exchangeRateAgio": float(self.exchange_rate_agio),
            }
        )
        optional = {
            "nomeFantasia": self.nome_fantasia,
            "tipoCliente": self.tipo_cliente or None,
            "tipoFornecedor": self.tipo_fornecedor or None,
            "tipoAgente": self.tipo_agente or None,
            "cnpj": self.cnpj,
            "scac": self.scac,
            "paymentTerm": self.payment_term,
            "clientsLinked": self.clients_linked,
            "commissionAgreement": (
                self.commission_agreement.to_dict() if self.commission_agreement else None
            ),
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        return payload


def link_despachante_clients(partners: List[Partner]) -> List[Partner]:
    """Recompute ``clients_linked`` on every customs broker.

    A client is linked to a broker when one of its contacts belongs to the
    ``Despachante`` department and points at the broker id.
    """

    for broker in (p for p in partners if p.is_despachante):
        broker.clients_linked = [
            client.name
            for client in partners
            if client.has_role("cliente")
            and any(
                "Despachante" in contact.departments and contact.despachante_id == broker.id
                for contact in client.contacts
            )
        ]
    return partners


def agents(partners: Iterable[Partner]) -> List[Partner]:
    return [p for p in partners if p.has_role("agente")]


def clients(partners: Iterable[Partner]) -> List[Partner]:
    return [p for p in partners if p.has_role("cliente")]


def find_partner_by_name(partners: Iterable[Partner], name: str) -> Optional[Partner]:
    target = (name or "").strip().lower()
    for partner in partners:
        if partner.name.lower() == target:
            return partner
    return None


def next_partner_id(partners: Iterable[Partner]) -> int:
    ids = [p.id for p in partners if p.id is not None]
    return max(ids, default=0) + 1


_SUPPLIER_FLAGS = (
    "ciaMaritima",
    "ciaAerea",
    "transportadora",
    "terminal",
    "coLoader",
    "fumigacao",
    "despachante",
    "representante",
    "dta",
    "comissionados",
    "administrativo",
    "aluguelContainer",
    "lashing",
    "seguradora",
    "advogado",
)


def _roles(**enabled: bool) -> Dict[str, bool]:
    return {role: bool(enabled.get(role)) for role in ROLES}


def _supplier(*flags: str) -> Dict[str, bool]:
    return {flag: flag in flags for flag in _SUPPLIER_FLAGS}


TERMINALS = (
    (101, "PORTO DE FORTALEZA - CE", "BRFOR001", "Fortaleza", "CE"),
    (102, "CAIS TECOM - IMBITUBA-SC", "BRIBB002", "Imbituba", "SC"),
    (103, "TECON SEPETIBA - RJ", "BRIGI001", "Itaguaí", "RJ"),
    (104, "PORTO ITAPOA", "BRIOA001", "Itapoá", "SC"),
    (105, "PORTO DE ITAQUI - SÃO LUIZ - MA", "BRIQI001", "São Luiz", "MA"),
    (106, "SANTOS BRASIL IQI 11", "BRIQI007", "Itaqui", "MA"),
    (107, "SANTOS BRASIL IQI 3", "BRIQI008", "Itaqui", "MA"),
    (108, "CAIS COMERCIAL - ITAJAÍ - SC", "BRITJ001", "Itajaí", "SC"),
    (109, "TERMINAL DA BRASKARNE - ITAJAÍ - SC", "BRITJ002", "Itajaí", "SC"),
    (110, "TERMINAL DE CONTÊINERES - ITAJAÍ - SC", "BRITJ003", "Itajaí", "SC"),
    (111, "TEPORTI - TERMINAL PORTUÁRIO DE ITAJAÍ S/A", "BRITJ005", "Itajaí", "SC"),
    (112, "BARRA DO RIO TERMINAL PORTUÁRIO", "BRITJ007", "Itajaí", "SC"),
    (113, "SUPER TERMINAIS - MANAUS - AM", "BRMAO004", "Manaus", "AM"),
    (114, "TERMINAL CHIBATÃO - RETROPORTO - MANAUS - AM", "BRMAO016", "Manaus", "AM"),
    (115, "TERMINAL PORTONAVE - NAVEGANTES - SC", "BRNVT001", "Navegantes", "SC"),
    (116, "TERMINAL PORTUÁRIO DO PECÉM - SÃO GONÇALO DO AMARANTE", "BRPEC001", "São Gonçalo do Amarante", "CE"),
    (117, "TERMINAL DE CONTÊINERES - TCP - PARANAGUÁ - PR", "BRPNG002", "Paranaguá", "PR"),
    (118, "PORTO ORGANIZADO DE RECIFE - RECIFE - PE", "BRREC001", "Recife", "PE"),
    (119, "TERMINAL DE CONTÊINERES - TECON - RIO GRANDE - RS", "BRRIG005", "Rio Grande", "RS"),
    (120, "TERMINAL LIBRA - TECON 1 - RJ", "BBRRIO002", "Rio de Janeiro", "RJ"),
    (121, "MULTIRIO TERMINAL 2 - RJ", "BRRIO003", "Rio de Janeiro", "RJ"),
    (122, "MULTITERMINAIS - ARMAZÉM 12 - RJ", "BRRIO004", "Rio de Janeiro", "RJ"),
    (123, "CAIS COMERCIAL - SÃO FRANCISCO DO SUL - SC", "BRSFS001", "São Francisco do Sul", "SC"),
    (124, "TERMINAL DA BABITONGA - SÃO FRANCISCO DO SUL - SC", "BRSFS002", "São Francisco do Sul", "SC"),
    (125, "TERMINAL DE CONTÊINERES - TECOM - SALVADOR - BA", "BRSSA002", "Salvador", "BA"),
    (126, "EMBRAPORT EMPRESA BRASILEIRA DE TERMINAIS PORTUÁRIOS", "BRSSZ009", "Santos", "SP"),
    (127, "SANTOS BRASIL", "BRSSZ016", "Santos", "SP"),
    (128, "CODESP", "BRSSZ031", "Santos", "SP"),
    (129, "GRUPO LIBRA (PIER 35)", "BRSSZ035", "Santos", "SP"),
    (130, "ECOPORTO SANTOS S/A", "BRSSZ057", "Santos", "SP"),
    (131, "BRASIL TERMINAL PORTUÁRIO - BTP", "BRSSZ058", "Santos", "SP"),
    (132, "TERMINAL MARÍTIMO DO GUARUJA - TERMAG", "BRSSZ082", "Guarujá", "SP"),
    (133, "CAIS PÚBLICO DE SUAPE - IPOJUCA - PE", "BRSUA001", "Ipojuca", "PE"),
    (134, "TERMINAL CONTÊINERES DE SUAPE - IPOJUCA - PE", "BRSUA002", "Ipojuca", "PE"),
    (135, "INST.PORT.FLUV.ALF.USO PRIV-CONVICON CONTEINERES V.C.", "BRVDC007", "Vila do Conde", "PA"),
    (136, "CAIS COMERCIAL DE VITÓRIA - VITÓRIA - ES", "BRVIX001", "Vitória", "ES"),
    (137, "CIA PORTUARIA VILA VELHA - CPVV - ES", "BRVIX008", "Vila Velha", "ES"),
)


def initial_partners() -> List[Dict[str, Any]]:
    """Seed partners plus the Brazilian port terminals (ids 101-137)."""

    partners: List[Dict[str, Any]] = [
        {
            "id": 1,
            "name": "Nexus Imports",
            "nomeFantasia": "Nexus",
            "createdAt": "2023-05-10T00:00:00",
            "roles": _roles(cliente=True),
            "tipoCliente": {"importacao": True, "exportacao": True, "empresaNoExterior": False},
            "cnpj": "12.345.678/0001-90",
            "paymentTerm": 30,
            "exchangeRateAgio": 2.5,
            "demurrageAgreementDueDate": "2025-12-31T00:00:00",
            "address": {
                "street": "Rua da Carga",
                "number": "123",
                "complement": "Sala 45",
                "district": "Centro",
                "city": "São Paulo",
                "state": "SP",
                "zip": "01001-000",
                "country": "Brasil",
            },
            "contacts": [
                {
                    "name": "João da Silva",
                    "email": "joao@nexus.com",
                    "phone": "+55 11 91234-5678",
                    "departments": ["Comercial", "Operacional"],
                }
            ],
            "observations": "Cliente antigo, prioridade alta no atendimento.",
            "kpi": {"manual": {"mainRoutes": ["Shanghai > Santos", "Shenzhen > Itajai"]}},
        },
        {
            "id": 2,
            "name": "Ocean Express Logistics",
            "nomeFantasia": "OEL",
            "createdAt": "2022-11-20T00:00:00",
            "roles": _roles(agente=True),
            "tipoAgente": {"fcl": True, "lcl": False, "air": True, "projects": True},
            "cnpj": "98.765.432/0001-09",
            "paymentTerm": 45,
            "exchangeRateAgio": 0,
            "profitAgreements": [
                {"modal": "FCL", "direction": "IMPORTACAO", "amount": 50,
                 "unit": "por_container", "currency": "USD"},
                {"modal": "AIR", "direction": "EXPORTACAO", "amount": 25,
                 "unit": "por_bl", "currency": "USD"},
            ],
            "address": {
                "street": "Av. Atlântica",
                "number": "987",
                "complement": "Andar 10",
                "district": "Copacabana",
                "city": "Rio de Janeiro",
                "state": "RJ",
                "zip": "22010-000",
                "country": "Brasil",
            },
            "contacts": [
                {
                    "name": "Maria Oliveira",
                    "email": "maria@oceanexpress.com",
                    "phone": "+55 21 98765-4321",
                    "departments": ["Comercial", "Exportação"],
                }
            ],
            "observations": (
                "Agente parceiro para a rota da Europa. Contato principal para cotações é a Maria."
            ),
        },
        {
            "id": 3,
            "name": "Maersk Line",
            "nomeFantasia": "Maersk",
            "createdAt": "2022-01-15T00:00:00",
            "roles": _roles(fornecedor=True),
            "tipoFornecedor": _supplier("ciaMaritima"),
            "scac": "MAEU",
            "cnpj": "54.321.876/0001-21",
            "paymentTerm": 60,
            "exchangeRateAgio": 0,
            "demurrageAgreementDueDate": "2024-10-31T00:00:00",
            "standardFees": [
                {"name": "BL FEE", "value": 150, "currency": "USD", "unit": "Por BL"},
                {"name": "ISPS", "value": 35, "currency": "USD", "unit": "Por Contêiner"},
            ],
            "address": {
                "street": "Wall Street",
                "number": "100",
                "complement": "Suite 200",
                "district": "Manhattan",
                "city": "New York",
                "state": "NY",
                "zip": "10005",
                "country": "USA",
            },
            "contacts": [
                {
                    "name": "John Doe",
                    "email": "john.doe@maersk.com",
                    "phone": "+1 212-555-1234",
                    "departments": ["Importação", "Financeiro"],
                }
            ],
        },
        {
            "id": 4,
            "name": "Advocacia Marítima XYZ",
            "createdAt": "2023-01-01T00:00:00",
            "roles": _roles(fornecedor=True),
            "tipoFornecedor": _supplier("advogado"),
            "cnpj": "11.223.344/0001-55",
            "paymentTerm": 30,
            "exchangeRateAgio": 0,
            "address": {
                "street": "Avenida Paulista",
                "number": "1500",
                "city": "São Paulo",
                "state": "SP",
                "country": "Brasil",
            },
            "contacts": [
                {
                    "name": "Dr. Roberto Carlos",
                    "email": "roberto.carlos@advogados.com",
                    "phone": "+55 11 98888-7777",
                    "departments": ["Outro"],
                }
            ],
            "observations": (
                "Especializado em cobrança de demurrage. Enviar e-mail com fatura e HBL em anexo."
            ),
        },
        {
            "id": 5,
            "name": "Despachante Eficaz",
            "createdAt": "2023-01-01T00:00:00",
            "roles": _roles(fornecedor=True),
            "tipoFornecedor": _supplier("despachante"),
            "cnpj": "22.334.455/0001-66",
            "paymentTerm": 15,
            "exchangeRateAgio": 0,
            "address": {
                "street": "Rua do Despacho",
                "number": "789",
                "city": "Santos",
                "state": "SP",
                "country": "Brasil",
            },
            "contacts": [
                {
                    "name": "Ana Pereira",
                    "email": "ana.pereira@despachanteeficaz.com",
                    "phone": "+55 13 99999-8888",
                    "departments": ["Despachante"],
                }
            ],
        },
    ]
    for terminal_id, name, code, city, state in TERMINALS:
        partners.append(
            {
                "id": terminal_id,
                "name": name,
                "nomeFantasia": code,
                "roles": _roles(fornecedor=True),
                "tipoFornecedor": _supplier("terminal"),
                "contacts": [],
                "address": {"city": city, "state": state, "country": "Brasil"},
            }
        )
    return partners


__all__ = [
    "COMMISSION_UNITS",
    "CONTACT_DEPARTMENTS",
    "CommissionAgreement",
    "Contact",
    "PROFIT_AGREEMENT_UNITS",
    "Partner",
    "ROLES",
    "TERMINALS",
    "agents",
    "clients",
    "find_partner_by_name",
    "initial_partners",
    "link_despachante_clients",
    "next_partner_id",
]
