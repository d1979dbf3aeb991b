# Overview: Flask API routes for the dashboard; low-stock alerts and headline numbers.

from flask import Blueprint, jsonify

from ..decorators import require_auth
from ..services import ledger_service, reporting_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/alerts")
@require_auth
def alerts_route():
    """Products at or below their reorder point, lowest stock first."""
    return jsonify([p.to_dict() for p in ledger_service.get_alerts()]), 200


@dashboard_bp.get("/summary")
@require_auth
def summary_route():
    return jsonify(reporting_service.inventory_summary()), 200
