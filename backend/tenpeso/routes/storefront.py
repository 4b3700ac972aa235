# Overview: Public storefront and checkout routes; no admin token required.

from flask import Blueprint, current_app, jsonify, request

from ..errors import SettlementError
from ..services import catalog_service, order_service, settings_service
from ..services.payment_service import latest_payment


storefront_bp = Blueprint("storefront", __name__, url_prefix="/api")


@storefront_bp.get("/storefront/products")
def storefront_products_route():
    """Active products grouped by category, with live stock."""
    return jsonify({"categories": catalog_service.list_storefront_products()}), 200


@storefront_bp.get("/storefront/settings")
def storefront_settings_route():
    rows = settings_service.list_settings(public_only=True)
    return jsonify({"settings": {row["key"]: row["value"] for row in rows}}), 200


@storefront_bp.post("/orders")
def place_order_route():
    """
    Checkout.

    Body: customer fields plus items=[{product_id, qty}].
    Returns 201 {order_id, order_code}; 409 when a product ran out.
    """
    try:
        data = request.get_json(silent=True) or {}
        items = data.get("items")
        fields = {k: v for k, v in data.items() if k != "items"}

        result = order_service.place_order(fields, items)
        return jsonify(result), 201

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to place order")
        return jsonify({"error": "Internal server error"}), 500


@storefront_bp.get("/orders/<string:order_code>")
def get_order_by_code_route(order_code: str):
    """Customer-facing order status page."""
    try:
        order = order_service.get_order_by_code(order_code)
        data = order.to_dict()
        data["items"] = [item.to_public_dict() for item in order.items]
        payment = latest_payment(order.id)
        data["payment_status"] = payment.status if payment else None
        return jsonify({"order": data}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code


@storefront_bp.post("/orders/<string:order_code>/suggestion")
def submit_suggestion_route(order_code: str):
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.get_order_by_code(order_code)
        order = order_service.submit_suggestion(order.id, data.get("suggestion"))
        return jsonify({"order_code": order.order_code, "suggestion": order.suggestion}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to save suggestion")
        return jsonify({"error": "Internal server error"}), 500
