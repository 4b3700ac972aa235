# backend/tenpeso/routes/system.py
"""
System health endpoint.

Reports database reachability plus the two integrity signals an operator
cares about: stock cache drift and order total mismatches.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import InventoryLot, Order, Product
from ..services import reporting_service
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "lots": db.session.query(InventoryLot).count(),
            "orders": db.session.query(Order).count(),
        }
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": details,
        }
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


def check_inventory_health() -> dict:
    """Degraded (still operational) when cached stock and lots disagree."""
    try:
        drift = reporting_service.stock_discrepancies()
    except SQLAlchemyError:
        current_app.logger.exception("Inventory health check failed")
        return {"status": "unhealthy", "error": "Inventory check error"}
    if drift:
        return {
            "status": "degraded",
            "warning": f"{len(drift)} product(s) with stock drift",
            "details": {"product_ids": [row["product_id"] for row in drift]},
        }
    return {"status": "healthy"}


def check_orders_health() -> dict:
    """Degraded when stored order totals disagree with their items or fee."""
    try:
        mismatches = reporting_service.order_integrity_report()
    except SQLAlchemyError:
        current_app.logger.exception("Order integrity check failed")
        return {"status": "unhealthy", "error": "Order check error"}
    if mismatches:
        return {
            "status": "degraded",
            "warning": f"{len(mismatches)} order(s) with total mismatches",
            "details": {"order_ids": [row["order_id"] for row in mismatches]},
        }
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    database_health = check_database_health()
    if database_health["status"] == "unhealthy":
        inventory_health = {"status": "skipped"}
        orders_health = {"status": "skipped"}
    else:
        inventory_health = check_inventory_health()
        orders_health = check_orders_health()

    checks = [database_health, inventory_health, orders_health]
    if any(check["status"] == "unhealthy" for check in checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
            "inventory": inventory_health,
            "orders": orders_health,
        },
    }, http_status
