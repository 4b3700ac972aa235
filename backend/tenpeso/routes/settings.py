from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin
from ..errors import SettlementError
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/admin/settings")


@settings_bp.get("")
@require_admin
def list_settings_route():
    return jsonify({"settings": settings_service.list_settings()}), 200


@settings_bp.put("/<string:key>")
@require_admin
def set_setting_route(key: str):
    """Body: {"value": <typed JSON value>}"""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or "value" not in payload:
        return jsonify({"error": "value required"}), 400

    try:
        row = settings_service.set_setting(key, payload["value"], actor=g.actor)
        return jsonify({"key": row.key, "value": row.value}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update setting %s", key)
        return jsonify({"error": "Internal server error"}), 500
