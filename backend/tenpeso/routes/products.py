# Overview: Admin product routes; catalog edits and manual stock correction.

# backend/tenpeso/routes/products.py
"""
Product management routes.

stock_qty is read-only here except through /stock-correction, which is
audited and leaves the lot ledger alone.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin
from ..errors import SettlementError
from ..services import catalog_service


products_bp = Blueprint("products", __name__, url_prefix="/api/admin/products")


@products_bp.get("")
@require_admin
def list_products_route():
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    category = request.args.get("category") or None
    products = catalog_service.list_products(include_inactive=include_inactive, category=category)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.post("")
@require_admin
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(payload, actor=g.actor)
        return jsonify({"product": product.to_dict()}), 201

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_admin
def get_product_route(product_id: int):
    try:
        return jsonify({"product": catalog_service.get_product(product_id).to_dict()}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.delete("/<int:product_id>")
@require_admin
def deactivate_product_route(product_id: int):
    """Soft delete; lots, orders and reports keep referencing the product."""
    try:
        product = catalog_service.deactivate_product(product_id, actor=g.actor)
        return jsonify({"product": product.to_dict()}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/<int:product_id>")
@require_admin
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(product_id, payload, actor=g.actor)
        return jsonify({"product": product.to_dict()}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/stock-correction")
@require_admin
def correct_stock_route(product_id: int):
    """
    Body: {"stock_qty": int, "note": optional}
    """
    payload = request.get_json(silent=True) or {}
    if "stock_qty" not in payload:
        return jsonify({"error": "stock_qty required"}), 400

    try:
        product = catalog_service.correct_stock(
            product_id,
            payload["stock_qty"],
            note=payload.get("note"),
            actor=g.actor,
        )
        return jsonify({"product": product.to_dict()}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to correct stock")
        return jsonify({"error": "Internal server error"}), 500
