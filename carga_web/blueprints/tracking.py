"""Cargo-flows tracking endpoints."""

from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request

from ..integrations.cargoflows import (
    MISSING_CREDENTIALS_MESSAGE,
    TRACKING_TYPES,
    CargoFlowsClient,
    CargoFlowsError,
    EnhancedPollingError,
)

tracking_bp = Blueprint("tracking", __name__, url_prefix="/api")


def cargoflows_client() -> CargoFlowsClient:
    config = current_app.config
    return CargoFlowsClient(config.get("CARGOFLOWS_API_KEY"), config.get("CARGOFLOWS_ORG_TOKEN"))


@tracking_bp.get("/tracking/<booking>")
def track_shipment(booking: str) -> tuple[Response, int] | Response:
    """Poll Cargo-flows for a shipment, registering it when it is unknown.

    Query parameters:
        type: ``bookingNumber`` (default), ``containerNumber`` or ``mblNumber``.
        carrierName: Optional carrier name, resolved to its SCAC code.
    """

    tracking_type = request.args.get("type") or "bookingNumber"
    if tracking_type not in TRACKING_TYPES:
        return (
            jsonify(
                {
                    "status": "error",
                    "message": (
                        f"Invalid tracking type provided: {tracking_type}. Must be one of "
                        "'bookingNumber', 'containerNumber', or 'mblNumber'."
                    ),
                }
            ),
            400,
        )
    carrier_name = request.args.get("carrierName")
    current_app.logger.info("Polling for %s: %s", tracking_type, booking)
    try:
        return jsonify(cargoflows_client().track(booking, tracking_type, carrier_name))
    except EnhancedPollingError as exc:
        current_app.logger.error("Tracking failed for %s: %s", booking, exc)
        return jsonify(exc.to_response()), 503
    except Exception as exc:
        current_app.logger.exception("Unexpected tracking error for %s", booking)
        return (
            jsonify({"status": "error", "message": "Unexpected tracking error", "error": str(exc)}),
            500,
        )


@tracking_bp.get("/eventos")
def list_events() -> tuple[Response, int] | Response:
    """Events of every active intermodal shipment."""

    config = current_app.config
    if not config.get("CARGOFLOWS_API_KEY") or not config.get("CARGOFLOWS_ORG_TOKEN"):
        return jsonify({"error": MISSING_CREDENTIALS_MESSAGE}), 500
    try:
        return jsonify(cargoflows_client().list_active_events())
    except CargoFlowsError as exc:
        current_app.logger.error("Error in /api/eventos: %s", exc)
        return jsonify({"error": str(exc)}), 502


@tracking_bp.post("/tracking/<shipment_number>/refresh")
def refresh_tracking(shipment_number: str) -> tuple[Response, int] | Response:
    """Ask Cargo-flows to refresh a registered shipment."""

    try:
        return jsonify(cargoflows_client().update_shipment(shipment_number))
    except CargoFlowsError as exc:
        return jsonify({"success": False, "error": str(exc)}), 502


@tracking_bp.get("/tracking/<shipment_number>/map")
def route_map(shipment_number: str) -> tuple[Response, int] | Response:
    """Vessel position and route polylines for the tracking map."""

    try:
        return jsonify(cargoflows_client().get_route_map(shipment_number))
    except CargoFlowsError as exc:
        return jsonify({"error": str(exc)}), 502


__all__ = ["tracking_bp", "cargoflows_client"]
