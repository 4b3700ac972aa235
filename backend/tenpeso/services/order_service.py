"""
Order settlement service.

WHY: Placing an order must validate stock, write the order and its lines,
consume FIFO lots, update cached stock and open a payment as one transaction.
Cancelling or deleting an open order must put every consumed unit back.
"""

from __future__ import annotations

import secrets

from flask import current_app

from ..errors import (
    InvalidTransitionError,
    InventoryInconsistencyError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
)
from ..extensions import db
from ..models import Order, OrderItem, Payment, Product
from ..models.orders import (
    FULFILLMENT_DELIVERY,
    FULFILLMENT_PICKUP,
    FULFILLMENTS,
    ORDER_CANCELLED,
    ORDER_OUT_FOR_DELIVERY,
    ORDER_PENDING,
    ORDER_STATUS_FLOW,
    ORDER_STATUSES,
    PAYMENT_METHOD_GCASH,
    PAYMENT_METHODS,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    TERMINAL_ORDER_STATUSES,
)
from ..time_utils import utcnow
from ..validation import parse_order_items
from .audit_service import append_audit_event, list_audit_events
from .concurrency import begin_write, flush_unique_code, lock_for_update, run_with_retry
from .fifo_service import allocate, release_allocations, weighted_unit_cost
from .payment_service import latest_payment
from .settings_service import get_checkout_settings


ORDER_CODE_PREFIX = "FDS-"
ORDER_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
ORDER_CODE_LEN = 6
MAX_SUGGESTION_LEN = 1000


def generate_order_code() -> str:
    return ORDER_CODE_PREFIX + "".join(secrets.choice(ORDER_CODE_ALPHABET) for _ in range(ORDER_CODE_LEN))


def _clean(value, max_len: int | None = None) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if max_len is not None and len(s) > max_len:
        raise ValidationError(f"value exceeds max length {max_len}")
    return s


def _validate_order_fields(fields: dict, checkout) -> dict:
    if not isinstance(fields, dict):
        raise ValidationError("Invalid order payload")

    customer_name = _clean(fields.get("customer_name"), 120)
    if not customer_name:
        raise ValidationError("customer_name is required")

    fulfillment = _clean(fields.get("fulfillment")) or FULFILLMENT_PICKUP
    if fulfillment not in FULFILLMENTS:
        raise ValidationError(f"fulfillment must be one of {sorted(FULFILLMENTS)}")
    if fulfillment not in checkout.enabled_fulfillments():
        raise ValidationError(f"{fulfillment} is not available right now")

    pickup_location = _clean(fields.get("pickup_location"), 120)
    delivery_location = _clean(fields.get("delivery_location"), 255)
    if fulfillment == FULFILLMENT_PICKUP:
        if not pickup_location:
            raise ValidationError("pickup_location is required for pickup orders")
        if checkout.pickup_locations and pickup_location not in checkout.pickup_locations:
            raise ValidationError(
                f"pickup_location must be one of {checkout.pickup_locations}",
                details={"pickup_location": pickup_location},
            )
        delivery_location = None
    else:
        if not delivery_location:
            raise ValidationError("delivery_location is required for delivery orders")
        pickup_location = None

    payment_method = _clean(fields.get("payment_method"))
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {sorted(PAYMENT_METHODS)}")
    if payment_method not in checkout.enabled_payment_methods():
        raise ValidationError(f"{payment_method} payments are not available right now")

    payment_reference = _clean(fields.get("payment_reference"), 128)
    if payment_method == PAYMENT_METHOD_GCASH and not payment_reference:
        raise ValidationError("GCash reference number is required (or TO-FOLLOW)")

    order_code = _clean(fields.get("order_code"), 32)

    return {
        "order_code": order_code,
        "customer_name": customer_name,
        "contact": _clean(fields.get("contact"), 120),
        "notes": _clean(fields.get("notes")),
        "fulfillment": fulfillment,
        "pickup_location": pickup_location,
        "delivery_location": delivery_location,
        "payment_method": payment_method,
        "payment_reference": payment_reference if payment_method == PAYMENT_METHOD_GCASH else None,
        "proof_url": _clean(fields.get("proof_url"), 1024),
    }


def _resolve_order_code(requested: str | None) -> str:
    if requested:
        taken = db.session.query(Order.id).filter_by(order_code=requested).first()
        if taken is not None:
            raise ValidationError("order_code already used", details={"order_code": requested})
        return requested
    for _ in range(5):
        code = generate_order_code()
        if db.session.query(Order.id).filter_by(order_code=code).first() is None:
            return code
    raise ValidationError("Could not allocate a unique order code, try again")


def _lock_products(product_ids) -> dict[int, Product]:
    rows = lock_for_update(
        db.session.query(Product).filter(Product.id.in_(sorted(product_ids))).order_by(Product.id.asc())
    ).all()
    return {p.id: p for p in rows}


def place_order(fields: dict, items, *, actor: str | None = None) -> dict:
    """
    Place an order atomically.

    Steps (single transaction): order row, item rows with snapshots, FIFO
    allocation per item, stock decrement, initial payment. Any failure leaves
    no trace.
    """
    lines = parse_order_items(items)
    checkout = get_checkout_settings()
    clean = _validate_order_fields(fields, checkout)

    def _op():
        begin_write()

        products = _lock_products(line["product_id"] for line in lines)
        for line in lines:
            product = products.get(line["product_id"])
            if product is None:
                raise NotFoundError(
                    f"Product {line['product_id']} not found",
                    details={"product_id": line["product_id"]},
                )
            available = product.stock_qty if product.is_active else 0
            if available < line["qty"]:
                raise OutOfStockError(
                    product_id=product.id,
                    name=product.name,
                    requested=line["qty"],
                    available=available,
                )

        order_code = _resolve_order_code(clean["order_code"])
        subtotal = sum(products[line["product_id"]].price_cents * line["qty"] for line in lines)
        fee = checkout.delivery_fee_cents if clean["fulfillment"] == FULFILLMENT_DELIVERY else 0

        order = Order(
            order_code=order_code,
            customer_name=clean["customer_name"],
            contact=clean["contact"],
            notes=clean["notes"],
            fulfillment=clean["fulfillment"],
            pickup_location=clean["pickup_location"],
            delivery_location=clean["delivery_location"],
            payment_method=clean["payment_method"],
            subtotal_cents=subtotal,
            delivery_fee_cents=fee,
            total_cents=subtotal + fee,
            status=ORDER_PENDING,
        )
        db.session.add(order)
        flush_unique_code("order_code", order_code)

        order_items = []
        for line in lines:
            product = products[line["product_id"]]
            item = OrderItem(
                order_id=order.id,
                product_id=product.id,
                name_snapshot=product.name,
                category_snapshot=product.category,
                qty=line["qty"],
                unit_price_cents=product.price_cents,
                unit_cost_cents=0,
                line_total_cents=product.price_cents * line["qty"],
            )
            db.session.add(item)
            order_items.append(item)
        db.session.flush()

        for item in order_items:
            allocations = allocate(order.id, item.product_id, item.qty)
            allocated = sum(a["qty"] for a in allocations)
            if allocated != item.qty:
                raise InventoryInconsistencyError(
                    f"Allocated {allocated} of {item.qty} unit(s) for product {item.product_id}",
                    details={"product_id": item.product_id, "order_code": order_code},
                )
            item.unit_cost_cents = weighted_unit_cost(allocations, item.qty)
            products[item.product_id].stock_qty -= item.qty

        auto_paid = clean["payment_method"] in checkout.auto_paid_methods
        payment = Payment(
            order_id=order.id,
            method=clean["payment_method"],
            amount_cents=order.total_cents,
            status=PAYMENT_PAID if auto_paid else PAYMENT_PENDING,
            reference_number=clean["payment_reference"],
            proof_url=clean["proof_url"],
            paid_at=utcnow() if auto_paid else None,
        )
        db.session.add(payment)
        db.session.flush()

        append_audit_event(
            event_type="order.placed",
            entity_type="order",
            entity_id=order.id,
            actor=actor,
            payload={
                "order_code": order_code,
                "total_cents": order.total_cents,
                "items": lines,
            },
        )

        db.session.commit()
        current_app.logger.info(
            "Placed order %s: %d line(s), total %d",
            order_code,
            len(lines),
            order.total_cents,
        )
        return {"order_id": order.id, "order_code": order_code}

    return run_with_retry(_op)


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def get_order_by_code(order_code: str) -> Order:
    order = db.session.query(Order).filter_by(order_code=(order_code or "").strip()).first()
    if order is None:
        raise NotFoundError(f"Order {order_code} not found", details={"order_code": order_code})
    return order


def list_orders(*, status: str | None = None, limit: int = 200) -> list[Order]:
    q = db.session.query(Order)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {status}")
        q = q.filter(Order.status == status)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def order_detail(order: Order) -> dict:
    """Order with items, allocations, payments, the authoritative payment and its audit history."""
    data = order.to_dict(include_items=True)
    data["allocations"] = [a.to_dict() for a in order.allocations]
    data["payments"] = [p.to_dict() for p in order.payments]
    latest = latest_payment(order.id)
    data["latest_payment"] = latest.to_dict() if latest else None
    data["history"] = [ev.to_dict() for ev in list_audit_events(entity_type="order", entity_id=order.id)]
    return data


def _restore_stock(order: Order) -> None:
    """Give back lots and cached stock consumed by an open order."""
    release_allocations(order.id)
    products = _lock_products({item.product_id for item in order.items})
    for item in order.items:
        product = products.get(item.product_id)
        if product is not None:
            product.stock_qty += item.qty


def _load_order_locked(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def cancel_order(order_id: int, *, reason: str | None = None, actor: str | None = None) -> Order:
    """Cancel a non-terminal order and return its stock to the original lots."""
    def _op():
        begin_write()
        order = _load_order_locked(order_id)
        if order.status in TERMINAL_ORDER_STATUSES:
            raise InvalidTransitionError(
                f"Cannot cancel a {order.status} order",
                details={"order_id": order.id, "status": order.status},
            )

        previous = order.status
        _restore_stock(order)
        order.status = ORDER_CANCELLED

        append_audit_event(
            event_type="order.cancelled",
            entity_type="order",
            entity_id=order.id,
            actor=actor,
            note=reason,
            payload={"from": previous, "order_code": order.order_code},
        )
        db.session.commit()
        current_app.logger.info("Cancelled order %s (was %s)", order.order_code, previous)
        return order

    return run_with_retry(_op)


def transition_status(
    order_id: int,
    new_status: str,
    *,
    reason: str | None = None,
    actor: str | None = None,
) -> Order:
    """
    Move an order along its fulfilment pipeline.

    Forward jumps are allowed, backward jumps are rejected, terminal orders
    are frozen, and out_for_delivery applies to delivery orders only.
    """
    new_status = (new_status or "").strip()
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {new_status}")

    if new_status == ORDER_CANCELLED:
        order = get_order(order_id)
        if order.status == ORDER_CANCELLED:
            return order
        return cancel_order(order_id, reason=reason, actor=actor)

    def _op():
        order = _load_order_locked(order_id)
        current = order.status
        if current == new_status:
            return order
        if current in TERMINAL_ORDER_STATUSES:
            raise InvalidTransitionError(
                f"Order is {current}; no further changes allowed",
                details={"from": current, "to": new_status},
            )
        if new_status == ORDER_OUT_FOR_DELIVERY and order.fulfillment != FULFILLMENT_DELIVERY:
            raise InvalidTransitionError(
                "Only delivery orders can go out for delivery",
                details={"from": current, "to": new_status},
            )
        if ORDER_STATUS_FLOW.index(new_status) < ORDER_STATUS_FLOW.index(current):
            raise InvalidTransitionError(
                f"Cannot move order back from {current} to {new_status}",
                details={"from": current, "to": new_status},
            )

        order.status = new_status
        append_audit_event(
            event_type="order.status_changed",
            entity_type="order",
            entity_id=order.id,
            actor=actor,
            payload={"from": current, "to": new_status},
        )
        db.session.commit()
        return order

    return run_with_retry(_op)


def delete_order(order_id: int, *, actor: str | None = None) -> dict:
    """
    Hard delete an order with its items, allocations and payments.

    Open orders give their stock back first. A full snapshot is kept in the
    audit trail since the rows themselves are gone afterwards.
    """
    def _op():
        begin_write()
        order = _load_order_locked(order_id)
        snapshot = order_detail(order)

        if order.status not in TERMINAL_ORDER_STATUSES:
            _restore_stock(order)

        append_audit_event(
            event_type="order.deleted",
            entity_type="order",
            entity_id=order.id,
            actor=actor,
            note=order.order_code,
            payload=snapshot,
        )
        db.session.delete(order)
        db.session.commit()
        current_app.logger.warning("Deleted order %s (status %s)", snapshot["order_code"], snapshot["status"])
        return snapshot

    return run_with_retry(_op)


def submit_suggestion(order_id: int, text: str | None) -> Order:
    """Store the customer's post-order suggestion; blank text clears it."""
    cleaned = (text or "").strip()
    if len(cleaned) > MAX_SUGGESTION_LEN:
        raise ValidationError(f"suggestion exceeds max length {MAX_SUGGESTION_LEN}")

    def _op():
        order = get_order(order_id)
        order.suggestion = cleaned or None
        db.session.commit()
        return order

    return run_with_retry(_op)
