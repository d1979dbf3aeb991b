# backend/stocksimple/routes/system.py
"""
System health endpoint.

Reports database connectivity for load balancers and deployment checks.
"""

import time
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "OK" if healthy else "DEGRADED",
        "message": "StockSimple API is running",
        "database": database,
    }
    return jsonify(body), 200 if healthy else 503
