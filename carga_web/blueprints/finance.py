"""Financial ledger, commissions, demurrage control and cost sheet routes."""

from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint, Response, abort, current_app, jsonify, request
from sqlalchemy.exc import NoResultFound

from carga_common.commissions import (
    CommissionError,
    CommissionSummary,
    commission_payment_entry,
    commission_summaries,
)
from carga_common.financials import (
    FinancialEntry,
    FinancialValidationError,
    balance,
    find_account,
    renegotiate,
    resolve_status,
    send_to_legal,
    settle_entry,
    unified_settlement_totals,
)
from carga_common.shipments import QuoteCharge
from carga_common.tariffs import (
    DemurrageInvoiceError,
    DemurrageItem,
    DemurrageTariff,
    LtiTariff,
    TierLine,
    breakdown_total_label,
    build_demurrage_invoice,
    build_demurrage_items,
    demurrage_cost_and_sale,
)

from .. import get_repository
from ..forms import (
    parse_financial_entry_form,
    parse_legal_referral_form,
    parse_renegotiation_form,
    parse_settlement_form,
)
from ..repositories import CollectionRepository
from ..services.exchange_rates import cost_sheet_totals, get_rates

finance_bp = Blueprint("finance", __name__, url_prefix="/api")


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _invalid(errors: List[str]) -> tuple[Response, int]:
    return jsonify({"errors": errors}), 400


def _entry_or_404(repo: CollectionRepository, entry_id: str) -> FinancialEntry:
    try:
        return repo.find_financial_entry(entry_id)
    except NoResultFound:
        abort(404)


def _entry_view(entry: FinancialEntry) -> Dict[str, Any]:
    payload = entry.to_dict()
    payload["balance"] = float(balance(entry))
    payload["displayStatus"] = resolve_status(entry)
    return payload


@finance_bp.get("/financial-entries")
def list_entries() -> Response:
    """Ledger with the outstanding balance and derived status of each entry."""

    entries = get_repository().financial_entries()
    kind = request.args.get("type")
    if kind:
        entries = [e for e in entries if e.type == kind]
    return jsonify([_entry_view(e) for e in entries])


@finance_bp.post("/financial-entries")
def create_entry() -> tuple[Response, int]:
    """Launch a manual receivable or payable."""

    payload, errors = parse_financial_entry_form(_payload())
    if errors or payload is None:
        return _invalid(errors)
    record = get_repository().add_financial_entry(payload)
    return jsonify(record), 201


@finance_bp.get("/financial-entries/summary")
def settlement_summary() -> Response:
    """Net outstanding balance per currency for the selected entries."""

    entries = get_repository().financial_entries()
    selected = request.args.getlist("id")
    if selected:
        entries = [e for e in entries if e.id in selected]
    totals = unified_settlement_totals(entries)
    return jsonify({currency: float(total) for currency, total in totals.items()})


@finance_bp.post("/financial-entries/<entry_id>/settle")
def settle(entry_id: str) -> tuple[Response, int] | Response:
    """Register a payment and move the bank account balance."""

    repo = get_repository()
    entry = _entry_or_404(repo, entry_id)
    form, errors = parse_settlement_form(_payload())
    if errors or form is None:
        return _invalid(errors)
    accounts = repo.bank_accounts()
    account = find_account(accounts, account_id=form.account_id)
    try:
        payment = settle_entry(entry, account, form.amount, exchange_rate=form.exchange_rate)
    except FinancialValidationError as exc:
        return _invalid([str(exc)])
    repo.update_financial_entry(entry_id, entry.to_dict())
    repo.save_bank_accounts(accounts)
    current_app.logger.info("Payment %s registered on %s", payment.id, entry.invoice_id)
    return jsonify({"entry": _entry_view(entry), "payment": payment.to_dict()})


@finance_bp.post("/financial-entries/<entry_id>/renegotiate")
def renegotiate_entry(entry_id: str) -> tuple[Response, int]:
    """Split an entry into monthly installments."""

    repo = get_repository()
    entry = _entry_or_404(repo, entry_id)
    form, errors = parse_renegotiation_form(_payload())
    if errors or form is None:
        return _invalid(errors)
    try:
        installments = renegotiate(entry, form.installments, form.start_date, form.total)
    except FinancialValidationError as exc:
        return _invalid([str(exc)])
    created = repo.add_financial_entries(installments)
    repo.update_financial_entry(entry_id, {"status": entry.status})
    return jsonify({"installments": created}), 201


@finance_bp.post("/financial-entries/<entry_id>/legal")
def refer_to_legal(entry_id: str) -> tuple[Response, int] | Response:
    """Hand an overdue receivable to the partner law firm."""

    repo = get_repository()
    entry = _entry_or_404(repo, entry_id)
    payload = _payload()
    form, errors = parse_legal_referral_form(payload)
    if errors or form is None:
        return _invalid(errors)
    lawyer = next((p for p in repo.partners() if p.id == form.lawyer_id), None)
    if lawyer is None:
        return _invalid(["Advogado não encontrado."])
    try:
        send_to_legal(entry, payload.get("legalStatus") or "Extrajudicial", form.comments)
    except FinancialValidationError as exc:
        return _invalid([str(exc)])
    record = repo.update_financial_entry(entry_id, entry.to_dict())
    return jsonify({"entry": record, "lawyer": lawyer.name})


def _commissions(repo: CollectionRepository) -> List[CommissionSummary]:
    return commission_summaries(
        repo.partners(), repo.shipments(), repo.financial_entries(), get_rates()
    )


@finance_bp.get("/commissions")
def list_commissions() -> Response:
    """Commission owed to each commission earner, per client shipment."""

    return jsonify([summary.to_dict() for summary in _commissions(get_repository())])


@finance_bp.post("/commissions/<int:partner_id>/<shipment_id>/pay")
def pay_commission(partner_id: int, shipment_id: str) -> tuple[Response, int]:
    """Record the commission of one shipment as a paid debit."""

    repo = get_repository()
    summary = next((s for s in _commissions(repo) if s.partner.id == partner_id), None)
    item = summary.find(shipment_id) if summary else None
    if item is None:
        abort(404)
    try:
        entry = commission_payment_entry(summary.partner, item)
    except CommissionError as exc:
        return _invalid([str(exc)])
    record = repo.add_financial_entry(entry)
    current_app.logger.info("Commission of %s paid to %s", shipment_id, summary.partner.name)
    return jsonify(record), 201


def _priced_items(repo: CollectionRepository) -> List[tuple[DemurrageItem, Any]]:
    demurrage_tariffs = [DemurrageTariff.from_dict(t) for t in repo.get("demurrage_tariffs")]
    lti_tariffs = [LtiTariff.from_dict(t) for t in repo.get("lti_tariffs")]
    return [
        (
            item,
            demurrage_cost_and_sale(
                item.overdue_days,
                carrier=item.shipment.carrier or "",
                container_type=item.container.type,
                demurrage_tariffs=demurrage_tariffs,
                lti_tariffs=lti_tariffs,
            ),
        )
        for item in build_demurrage_items(repo.shipments())
    ]


@finance_bp.get("/demurrage")
def list_demurrage() -> Response:
    """Free-time windows per container with cost, sale and profit."""

    return jsonify(
        [
            {
                **item.to_dict(),
                "cost": float(quote.total_cost),
                "sale": float(quote.total_sale),
                "profit": float(quote.profit),
            }
            for item, quote in _priced_items(get_repository())
        ]
    )


@finance_bp.get("/demurrage/<item_id>")
def demurrage_breakdown(item_id: str) -> Response:
    """Tier-by-tier cost and sale of one container window."""

    for item, quote in _priced_items(get_repository()):
        if item.id == item_id:
            break
    else:
        abort(404)

    def lines(tiers: List[TierLine]) -> List[Dict[str, Any]]:
        return [
            {"label": t.label, "days": t.days, "rate": float(t.rate), "total": float(t.total)}
            for t in tiers
        ]

    return jsonify(
        {
            **item.to_dict(),
            "label": breakdown_total_label(quote.days),
            "costLines": lines(quote.cost_lines),
            "saleLines": lines(quote.sale_lines),
            "cost": float(quote.total_cost),
            "sale": float(quote.total_sale),
            "profit": float(quote.profit),
        }
    )


@finance_bp.post("/demurrage/<item_id>/invoice")
def invoice_demurrage(item_id: str) -> tuple[Response, int]:
    """Bill the overdue days of one container window to the client."""

    repo = get_repository()
    for item, quote in _priced_items(repo):
        if item.id == item_id:
            break
    else:
        abort(404)
    try:
        entry = build_demurrage_invoice(item, quote, repo.bank_accounts())
    except DemurrageInvoiceError as exc:
        return jsonify({"title": exc.title, "errors": [str(exc)]}), 400
    return jsonify(repo.add_financial_entry(entry)), 201


@finance_bp.get("/exchange-rates")
def exchange_rates() -> Response:
    """PTAX rates against BRL."""

    return jsonify({code: float(rate) for code, rate in get_rates().items()})


@finance_bp.get("/cost-sheet/<collection>/<doc_id>")
def cost_sheet(collection: str, doc_id: str) -> Response:
    """Charges of a quote or shipment converted to BRL with each partner's agio."""

    if collection not in ("quotes", "shipments"):
        abort(404)
    repo = get_repository()
    try:
        record = repo.find(collection, doc_id)
    except NoResultFound:
        abort(404)
    charges = [QuoteCharge.from_dict(c) for c in record.get("charges") or []]
    totals = cost_sheet_totals(charges, repo.partners())
    return jsonify({key: float(value) for key, value in totals.items()})


__all__ = ["finance_bp"]
