"""Initial records written the first time a collection is read."""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from carga_common.fees import initial_employees, initial_fees, initial_profit_settings
from carga_common.financials import initial_bank_accounts, initial_financial_entries
from carga_common.partners import initial_partners
from carga_common.rates import initial_quotes, initial_rates
from carga_common.tariffs import initial_demurrage_tariffs, initial_lti_tariffs
from carga_common.tasks import initial_task_rules

SeedFactory = Callable[[], List[Dict[str, Any]]]


def _empty() -> List[Dict[str, Any]]:
    return []


SEEDS: Dict[str, SeedFactory] = {
    "partners": initial_partners,
    "fees": initial_fees,
    "profit_settings": initial_profit_settings,
    "employees": initial_employees,
    "demurrage_tariffs": initial_demurrage_tariffs,
    "lti_tariffs": initial_lti_tariffs,
    "simulations": _empty,
    "financial_entries": initial_financial_entries,
    "bank_accounts": initial_bank_accounts,
    "shipments": _empty,
    "quotes": initial_quotes,
    "rates": initial_rates,
    "task_automation_rules": initial_task_rules,
}

COLLECTIONS = tuple(SEEDS)
