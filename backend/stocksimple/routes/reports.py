from flask import Blueprint, jsonify, request

from ..decorators import require_auth
from ..services import ledger_service
from ..validation import ValidationError, coerce_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

MAX_REPORT_SIZE = 100


@reports_bp.get("/toplow")
@require_auth
def top_low_report():
    n_raw = request.args.get("n")
    try:
        n = coerce_int("n", n_raw) if n_raw is not None else ledger_service.DEFAULT_REPORT_SIZE
        if n > MAX_REPORT_SIZE:
            raise ValidationError(f"n cannot exceed {MAX_REPORT_SIZE}")
        report = ledger_service.get_top_and_bottom_stock(n)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify({
        key: [p.to_dict() for p in products]
        for key, products in report.items()
    }), 200
