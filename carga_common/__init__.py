"""Domain models and business rules shared by the CargaInteligente back office."""

from .financials import (
    BankAccount,
    FinancialEntry,
    FinancialValidationError,
    Payment,
    balance,
    renegotiate,
    resolve_status,
    settle_entry,
)
from .fees import Employee, Fee, ProfitSetting
from .partners import Contact, Partner, link_despachante_clients
from .rates import Carrier, Rate, find_carrier_by_name, get_carrier_by_scac
from .shipments import (
    BLDraftData,
    ContainerDetail,
    Milestone,
    QuoteCharge,
    QuoteDetails,
    Shipment,
    generate_initial_milestones,
)
from .simulation import SimulationError, SimulationInput, calculate_simulation
from .tariffs import (
    DemurrageTariff,
    LtiTariff,
    TariffPeriod,
    build_demurrage_items,
    calculate_tiered_charge,
    demurrage_cost_and_sale,
)
from .tasks import TaskAutomationRule, due_tasks

__all__ = [
    "BLDraftData",
    "BankAccount",
    "Carrier",
    "Contact",
    "ContainerDetail",
    "DemurrageTariff",
    "Employee",
    "Fee",
    "FinancialEntry",
    "FinancialValidationError",
    "LtiTariff",
    "Milestone",
    "Partner",
    "Payment",
    "ProfitSetting",
    "QuoteCharge",
    "QuoteDetails",
    "Rate",
    "Shipment",
    "SimulationError",
    "SimulationInput",
    "TariffPeriod",
    "TaskAutomationRule",
    "balance",
    "build_demurrage_items",
    "calculate_simulation",
    "calculate_tiered_charge",
    "demurrage_cost_and_sale",
    "due_tasks",
    "find_carrier_by_name",
    "generate_initial_milestones",
    "get_carrier_by_scac",
    "link_despachante_clients",
    "renegotiate",
    "resolve_status",
    "settle_entry",
]
