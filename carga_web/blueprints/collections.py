"""JSON routes for the registries: partners, fees, rates, rules and simulations."""

from __future__ import annotations

import time
from typing import Any, Dict, List

from flask import Blueprint, Response, abort, jsonify, request
from sqlalchemy.exc import NoResultFound

from carga_common.fees import Fee, fees_for, next_fee_id
from carga_common.partners import Partner, next_partner_id
from carga_common.rates import Rate, is_expired, next_rate_id, search_rates
from carga_common.shipments import create_shipment_from_quote
from carga_common.simulation import SimulationError, build_simulation_record, calculate_simulation
from carga_common.tasks import TaskAutomationRule, due_tasks

from .. import get_repository
from ..forms import (
    parse_bank_account_form,
    parse_fee_form,
    parse_partner_form,
    parse_simulation_form,
    parse_task_rule_form,
)
from ..repositories import UnknownCollectionError

collections_bp = Blueprint("collections", __name__, url_prefix="/api")


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _invalid(errors: List[str]) -> tuple[Response, int]:
    return jsonify({"errors": errors}), 400


@collections_bp.get("/collections/revisions")
def collection_revisions() -> Response:
    """Revision counter per collection, polled by clients to refresh caches."""

    return jsonify(get_repository().revisions())


@collections_bp.get("/collections/<name>")
def list_collection(name: str) -> Response:
    """Return every record of a collection."""

    try:
        records = get_repository().get(name)
    except UnknownCollectionError:
        abort(404)
    return jsonify(records)


@collections_bp.put("/collections/<name>")
def replace_collection(name: str) -> tuple[Response, int] | Response:
    """Replace a whole collection with the posted list."""

    records = request.get_json(silent=True)
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        return _invalid(["O corpo deve ser uma lista de objetos."])
    repo = get_repository()
    try:
        if name == "partners":
            revision = repo.save_partners(Partner.from_dict(r) for r in records)
        else:
            revision = repo.save(name, records)
    except UnknownCollectionError:
        abort(404)
    return jsonify({"revision": revision})


@collections_bp.get("/collections/<name>/<doc_id>")
def get_document(name: str, doc_id: str) -> Response:
    """Return one record of a collection by id."""

    try:
        record = get_repository().find(name, doc_id)
    except (UnknownCollectionError, NoResultFound):
        abort(404)
    return jsonify(record)


@collections_bp.post("/partners")
def create_partner() -> tuple[Response, int]:
    """Register a partner; despachante links are recomputed on save."""

    partner, errors = parse_partner_form(_payload())
    if errors or partner is None:
        return _invalid(errors)
    repo = get_repository()
    partners = repo.partners()
    partner.id = next_partner_id(partners)
    partners.append(partner)
    repo.save_partners(partners)
    return jsonify(partner.to_dict()), 201


@collections_bp.put("/partners/<int:partner_id>")
def update_partner(partner_id: int) -> tuple[Response, int] | Response:
    """Replace a partner's registration."""

    partner, errors = parse_partner_form(_payload())
    if errors or partner is None:
        return _invalid(errors)
    repo = get_repository()
    partners = repo.partners()
    for index, existing in enumerate(partners):
        if existing.id == partner_id:
            partner.id = partner_id
            partners[index] = partner
            break
    else:
        abort(404)
    repo.save_partners(partners)
    return jsonify(partner.to_dict())


@collections_bp.get("/fees")
def list_fees() -> Response:
    """Fees applicable to a quote's modal, direction and load type."""

    fees = [Fee.from_dict(r) for r in get_repository().get("fees")]
    modal = request.args.get("modal")
    direction = request.args.get("direction")
    if modal and direction:
        fees = fees_for(fees, modal, direction, request.args.get("chargeType") or None)
    return jsonify([fee.to_dict() for fee in fees])


@collections_bp.post("/fees")
def create_fee() -> tuple[Response, int]:
    fee, errors = parse_fee_form(_payload())
    if errors or fee is None:
        return _invalid(errors)
    repo = get_repository()
    records = repo.get("fees")
    fee.id = next_fee_id(Fee.from_dict(r) for r in records)
    records.append(fee.to_dict())
    repo.save("fees", records)
    return jsonify(fee.to_dict()), 201


@collections_bp.post("/bank-accounts")
def create_bank_account() -> tuple[Response, int]:
    account, errors = parse_bank_account_form(_payload())
    if errors or account is None:
        return _invalid(errors)
    repo = get_repository()
    accounts = repo.bank_accounts()
    account.id = max((a.id for a in accounts), default=0) + 1
    accounts.append(account)
    repo.save_bank_accounts(accounts)
    return jsonify(account.to_dict()), 201


@collections_bp.get("/rates")
def list_rates() -> Response:
    """Search stored rates by lane; expired rates are flagged."""

    rates = [Rate.from_dict(r) for r in get_repository().get("rates")]
    found = search_rates(
        rates,
        request.args.get("origin", ""),
        request.args.get("destination", ""),
        request.args.get("modal") or None,
    )
    return jsonify([{**rate.to_dict(), "expired": is_expired(rate)} for rate in found])


@collections_bp.post("/rates")
def import_rates() -> tuple[Response, int]:
    """Append rates, typically the output of the rate extraction flow."""

    rows = _payload().get("rates")
    if not isinstance(rows, list) or not rows or not all(isinstance(r, dict) for r in rows):
        return _invalid(["Nenhuma tarifa para importar."])
    repo = get_repository()
    records = repo.get("rates")
    known = [Rate.from_dict(r) for r in records]
    created = []
    for row in rows:
        rate = Rate.from_dict({**row, "id": next_rate_id(known)})
        known.append(rate)
        created.append(rate.to_dict())
    repo.save("rates", records + created)
    return jsonify(created), 201


@collections_bp.post("/task-rules")
def create_task_rule() -> tuple[Response, int]:
    rule, errors = parse_task_rule_form(_payload())
    if errors or rule is None:
        return _invalid(errors)
    repo = get_repository()
    records = repo.get("task_automation_rules")
    rule.id = f"rule-{int(time.time() * 1000)}"
    records.append(rule.to_dict())
    repo.save("task_automation_rules", records)
    return jsonify(rule.to_dict()), 201


@collections_bp.get("/tasks/due")
def list_due_tasks() -> Response:
    """Automation rules that fire today for the registered shipments."""

    repo = get_repository()
    rules = [TaskAutomationRule.from_dict(r) for r in repo.get("task_automation_rules")]
    return jsonify([task.to_dict() for task in due_tasks(rules, repo.shipments())])


@collections_bp.post("/shipments/from-quote/<quote_id>")
def open_shipment(quote_id: str) -> tuple[Response, int]:
    """Open a shipment for an approved quote."""

    repo = get_repository()
    try:
        quote = repo.find("quotes", quote_id)
    except NoResultFound:
        abort(404)
    payload = _payload()
    shipment = create_shipment_from_quote(
        quote,
        shipper=payload.get("shipper"),
        consignee=payload.get("consignee"),
        agent=payload.get("agent"),
        responsible_user=payload.get("responsibleUser"),
    )
    repo.add_shipment(shipment)
    return jsonify(shipment.to_dict()), 201


@collections_bp.post("/simulations/calculate")
def calculate_simulation_route() -> tuple[Response, int] | Response:
    """Run the DI cost allocation without storing it."""

    data, errors = parse_simulation_form(_payload())
    if errors or data is None:
        return _invalid(errors)
    try:
        result = calculate_simulation(data)
    except SimulationError as exc:
        return _invalid([str(exc)])
    return jsonify(result.to_dict())


@collections_bp.post("/simulations")
def save_simulation() -> tuple[Response, int]:
    data, errors = parse_simulation_form(_payload())
    if errors or data is None:
        return _invalid(errors)
    repo = get_repository()
    record = build_simulation_record(data)
    records = repo.get("simulations")
    records.insert(0, record)
    repo.save("simulations", records)
    return jsonify(record), 201


__all__ = ["collections_bp"]
