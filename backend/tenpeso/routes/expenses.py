# Overview: Admin expense routes; batch-linked expenses feed the batch profit report.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin
from ..errors import SettlementError
from ..models.expenses import EXPENSE_CATEGORIES
from ..services import expense_service


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/admin/expenses")


@expenses_bp.get("")
@require_admin
def list_expenses_route():
    batch_id = request.args.get("batch_id", type=int)
    category = request.args.get("category") or None
    expenses = expense_service.list_expenses(batch_id=batch_id, category=category)
    return jsonify({
        "expenses": [e.to_dict() for e in expenses],
        "categories": list(EXPENSE_CATEGORIES),
    }), 200


@expenses_bp.post("")
@require_admin
def create_expense_route():
    """
    Body: {"description", "amount_cents", "category": optional, "batch_id": optional}
    """
    payload = request.get_json(silent=True) or {}
    try:
        expense = expense_service.create_expense(payload, actor=g.actor)
        return jsonify({"expense": expense.to_dict()}), 201

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/<int:expense_id>")
@require_admin
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id, actor=g.actor)
        return jsonify({"deleted": True, "expense_id": expense_id}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500
