# Overview: Admin order routes; status changes, payment verification and deletion.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin
from ..errors import SettlementError
from ..services import order_service, payment_service


orders_bp = Blueprint("admin_orders", __name__, url_prefix="/api/admin/orders")


@orders_bp.get("")
@require_admin
def list_orders_route():
    try:
        status = request.args.get("status") or None
        limit = request.args.get("limit", 200, type=int)
        orders = order_service.list_orders(status=status, limit=max(1, min(limit, 500)))
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.get("/<int:order_id>")
@require_admin
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return jsonify({"order": order_service.order_detail(order)}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.post("/<int:order_id>/status")
@require_admin
def transition_status_route(order_id: int):
    """
    Body: {"status": "...", "reason": optional, used when cancelling}
    """
    try:
        data = request.get_json(silent=True) or {}
        new_status = data.get("status")
        if not new_status:
            return jsonify({"error": "status required"}), 400

        order = order_service.transition_status(
            order_id,
            new_status,
            reason=data.get("reason"),
            actor=g.actor,
        )
        return jsonify({"order": order.to_dict()}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/payment")
@require_admin
def verify_payment_route(order_id: int):
    """
    Body: {"status": "pending|paid|verified|rejected", "reference_number": optional}
    """
    try:
        data = request.get_json(silent=True) or {}
        new_status = data.get("status")
        if not new_status:
            return jsonify({"error": "status required"}), 400

        payment = payment_service.verify_payment(
            order_id,
            new_status,
            reference_number=data.get("reference_number"),
            actor=g.actor,
        )
        return jsonify({"payment": payment.to_dict()}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update payment")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/payments")
@require_admin
def record_payment_route(order_id: int):
    """
    Record a new payment attempt; it becomes the order's authoritative payment.

    Body: {"method": "gcash|cod", "amount_cents": int, "reference_number": optional, "proof_url": optional}
    """
    try:
        data = request.get_json(silent=True) or {}
        payment = payment_service.record_payment(
            order_id,
            data.get("method"),
            data.get("amount_cents"),
            reference_number=data.get("reference_number"),
            proof_url=data.get("proof_url"),
            actor=g.actor,
        )
        return jsonify({"payment": payment.to_dict()}), 201

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_admin
def delete_order_route(order_id: int):
    try:
        snapshot = order_service.delete_order(order_id, actor=g.actor)
        return jsonify({"deleted": True, "order_code": snapshot["order_code"]}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500
