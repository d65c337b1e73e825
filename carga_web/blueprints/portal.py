"""Client and agent portal: BL draft submission and booking updates."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, Response, jsonify, request

from .. import get_repository
from ..actions import (
    SHIPMENT_NOT_FOUND,
    fetch_shipment_for_draft,
    submit_bl_draft,
    update_shipment_from_agent,
)

portal_bp = Blueprint("portal", __name__, url_prefix="/api/portal")


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _status(result: Dict[str, Any]) -> int:
    if result.get("success"):
        return 200
    if result.get("error", "").startswith(SHIPMENT_NOT_FOUND):
        return 404
    return 400


@portal_bp.get("/shipments/<shipment_id>/draft")
def get_draft(shipment_id: str) -> tuple[Response, int]:
    """Shipment data shown on the client BL draft form."""

    result = fetch_shipment_for_draft(get_repository(), shipment_id)
    return jsonify(result), _status(result)


@portal_bp.post("/shipments/<shipment_id>/draft")
def post_draft(shipment_id: str) -> tuple[Response, int]:
    """Receive the client's BL draft; ``isLate`` adds the amendment fee."""

    payload = _payload()
    draft = payload.get("draft")
    if not isinstance(draft, dict):
        return jsonify({"success": False, "error": "Dados do draft ausentes."}), 400
    result = submit_bl_draft(
        get_repository(), shipment_id, draft, bool(payload.get("isLate"))
    )
    return jsonify(result), _status(result)


@portal_bp.post("/shipments/<shipment_id>/agent-update")
def agent_update(shipment_id: str) -> tuple[Response, int]:
    """Booking, vessel and agreed rate sent by the overseas agent."""

    result = update_shipment_from_agent(get_repository(), shipment_id, _payload())
    return jsonify(result), _status(result)


__all__ = ["portal_bp"]
