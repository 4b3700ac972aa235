# Overview: Request guards for API routes.

import hmac
from functools import wraps

from flask import current_app, g, jsonify, request


def require_admin(f):
    """
    Require the shared admin bearer token.

    When ADMIN_API_TOKEN is unset (local development) the routes stay open.
    Sets g.actor for audit events.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("ADMIN_API_TOKEN")
        if not expected:
            g.actor = request.headers.get("X-Actor") or "admin"
            return f(*args, **kwargs)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        if not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
            current_app.logger.warning("Rejected admin token from %s for %s", request.remote_addr, request.path)
            return jsonify({"error": "Invalid token"}), 401

        g.actor = request.headers.get("X-Actor") or "admin"
        return f(*args, **kwargs)

    return decorated_function
