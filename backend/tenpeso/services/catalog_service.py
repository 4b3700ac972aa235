# backend/tenpeso/services/catalog_service.py
"""
Product catalog service.

stock_qty is not writable through create/update; it moves only through batch
receipts, order settlement, cancellation, and correct_stock().
"""
from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from ..models.catalog import DEFAULT_CATEGORY
from ..validation import (
    ModelValidationPolicy,
    coerce_int,
    enforce_rules_product,
    validate_payload,
)
from .audit_service import append_audit_event
from .concurrency import lock_for_update, run_with_retry


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "price_cents", "cost_cents", "is_active", "photo_url"},
    required_on_create={"name", "price_cents"},
)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def list_products(*, include_inactive: bool = True, category: str | None = None) -> list[Product]:
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if category:
        q = q.filter(Product.category == category)
    return q.order_by(Product.category.asc(), Product.name.asc(), Product.id.asc()).all()


def list_storefront_products() -> list[dict]:
    """Active products grouped by category, each with live stock."""
    groups: dict[str, list[dict]] = {}
    for product in list_products(include_inactive=False):
        groups.setdefault(product.category, []).append(product.to_public_dict())
    return [{"category": category, "products": items} for category, items in groups.items()]


def create_product(payload: dict, *, actor: str | None = None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    if not patch.get("category"):
        patch["category"] = DEFAULT_CATEGORY

    try:
        product = Product(stock_qty=0, **patch)
        db.session.add(product)
        db.session.flush()
        append_audit_event(
            event_type="product.created",
            entity_type="product",
            entity_id=product.id,
            actor=actor,
            payload={"name": product.name, "price_cents": product.price_cents},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return product


def update_product(product_id: int, payload: dict, *, actor: str | None = None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    if "category" in patch and not patch["category"]:
        patch["category"] = DEFAULT_CATEGORY

    def _op():
        product = get_product(product_id)
        before = {k: getattr(product, k) for k in patch}
        for k, v in patch.items():
            setattr(product, k, v)
        db.session.flush()
        append_audit_event(
            event_type="product.updated",
            entity_type="product",
            entity_id=product.id,
            actor=actor,
            payload={"before": before, "after": patch},
        )
        db.session.commit()
        return product

    return run_with_retry(_op)


def deactivate_product(product_id: int, *, actor: str | None = None) -> Product:
    """Soft delete: hides the product from the storefront, keeps its history."""
    return update_product(product_id, {"is_active": False}, actor=actor)


def correct_stock(product_id: int, new_qty, *, note: str | None = None, actor: str | None = None) -> Product:
    """
    Manual admin override of the cached stock_qty.

    The lot ledger is left untouched; stock_discrepancies() will report the
    product until lots and cache agree again.
    """
    new_qty = coerce_int(new_qty, "stock_qty")
    if new_qty < 0:
        raise ValidationError("stock_qty must be >= 0")

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        before = product.stock_qty
        product.stock_qty = new_qty
        db.session.flush()
        append_audit_event(
            event_type="product.stock_corrected",
            entity_type="product",
            entity_id=product.id,
            actor=actor,
            note=note,
            payload={"before": before, "after": new_qty},
        )
        db.session.commit()
        return product

    return run_with_retry(_op)
