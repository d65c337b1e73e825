"""Pydantic models for the answers the prompt flows accept from the model."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Department = Literal["Comercial", "Operacional", "Financeiro", "Importação", "Exportação", "Outro"]


class ExtractedContact(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    departments: List[Department] = Field(default_factory=list)


class ExtractedAddress(BaseModel):
    street: str = ""
    number: str = ""
    complement: str = ""
    district: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = ""


class PartnerInfo(BaseModel):
    name: str
    cnpj: Optional[str] = ""
    address: ExtractedAddress = Field(default_factory=ExtractedAddress)
    contacts: List[ExtractedContact] = Field(default_factory=list)


class ExtractedRate(BaseModel):
    origin: str
    destination: str
    carrier: str
    modal: str
    rate: str
    container: str
    transitTime: str
    validity: str
    freeTime: str


class ExtractedRates(BaseModel):
    rates: List[ExtractedRate] = Field(default_factory=list)


class QuoteContainer(BaseModel):
    type: str
    quantity: int = 1


class QuoteOceanShipment(BaseModel):
    containers: List[QuoteContainer] = Field(default_factory=list)


class QuoteDetailsDraft(BaseModel):
    """Partial quote form; anything the text does not mention stays unset."""

    modal: Optional[Literal["air", "ocean"]] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    incoterm: Optional[str] = None
    commodity: Optional[str] = None
    oceanShipmentType: Optional[Literal["FCL", "LCL"]] = None
    oceanShipment: Optional[QuoteOceanShipment] = None


class CrmEntry(BaseModel):
    contactName: str
    companyName: str
    emailAddress: str
    summary: str
    priority: Literal["high", "medium", "low"]


class EmailTaskAnalysis(BaseModel):
    taskDetected: bool
    taskDescription: str = ""
    isOperational: bool = False
    isFinancial: bool = False
    reminderNeeded: bool = False


class InvoiceItem(BaseModel):
    descricao: str
    quantidade: float
    valorUnitarioUSD: float
    ncm: str
    pesoKg: float


class InvoiceItems(BaseModel):
    items: List[InvoiceItem] = Field(default_factory=list)


class NcmRates(BaseModel):
    ncm: str
    ii: float
    ipi: float
    pis: float
    cofins: float
    description: str = ""


class CarrierGuess(BaseModel):
    carrier: str


class CourierStatus(BaseModel):
    lastStatus: str


class GeneratedXml(BaseModel):
    xml: str


class EmailContent(BaseModel):
    emailSubject: str
    emailBody: str


class EmailAndWhatsapp(EmailContent):
    whatsappMessage: str
