from flask import Blueprint, jsonify, request

from ..decorators import require_admin
from ..errors import SettlementError
from ..services import reporting_service
from ..validation import coerce_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/admin/reports")


def _int_arg(name: str, default=None):
    """Query-string integer; malformed values raise ValidationError instead of falling back."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    return coerce_int(raw, name)


@reports_bp.get("/daily")
@require_admin
def daily_profit_report():
    day = request.args.get("day")
    mode = request.args.get("mode", "realized")

    try:
        report = reporting_service.daily_profit(day, mode)
        return jsonify(report), 200
    except SettlementError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/top-products")
@require_admin
def top_products_report():
    mode = request.args.get("mode", "realized")

    try:
        window_days = _int_arg("window_days", 7)
        limit = _int_arg("limit", 10)
        rows = reporting_service.top_products(window_days, mode, limit=max(1, min(limit, 100)))
        return jsonify({"window_days": window_days, "mode": mode, "rows": rows}), 200
    except SettlementError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/batches")
@require_admin
def batch_profit_report():
    mode = request.args.get("mode", "realized")

    try:
        batch_id = _int_arg("batch_id")
        rows = reporting_service.batch_profit(mode, batch_id=batch_id)
        return jsonify({"mode": mode, "rows": rows}), 200
    except SettlementError as exc:
        return jsonify(exc.to_dict()), exc.status_code


@reports_bp.get("/dashboard")
@require_admin
def dashboard_report():
    return jsonify(reporting_service.dashboard_summary()), 200


@reports_bp.get("/integrity")
@require_admin
def integrity_report():
    orders = reporting_service.order_integrity_report()
    stock = reporting_service.stock_discrepancies()
    return jsonify({
        "ok": not orders and not stock,
        "orders": orders,
        "stock": stock,
    }), 200
