"""Printable HTML documents served straight to the browser."""

from __future__ import annotations

from flask import Blueprint, Response, abort, request
from sqlalchemy.exc import NoResultFound

from .. import actions, get_repository
from ..config import TRUE_VALUES

documents_bp = Blueprint("documents", __name__, url_prefix="/documents")


def _html(result: actions.ActionResult) -> Response:
    if not result.get("success"):
        return Response(result.get("error", ""), status=400, mimetype="text/plain")
    return Response(result["data"]["html"], mimetype="text/html")


@documents_bp.get("/hbl/<shipment_id>")
def house_bill(shipment_id: str) -> Response:
    """House bill of lading; ``?original=1`` issues the signed original."""

    repo = get_repository()
    try:
        repo.get_shipment(shipment_id)
    except NoResultFound:
        abort(404)
    is_original = request.args.get("original", "").strip().lower() in TRUE_VALUES
    return _html(actions.run_generate_hbl_html(repo, shipment_id, is_original))


@documents_bp.get("/simulations/<simulation_id>")
def simulation(simulation_id: str) -> Response:
    """Printable cost simulation."""

    repo = get_repository()
    try:
        repo.find("simulations", simulation_id)
    except NoResultFound:
        abort(404)
    return _html(actions.run_generate_simulation_html(repo, simulation_id))


__all__ = ["documents_bp"]
