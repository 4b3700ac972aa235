# Overview: Payment attempts per order; the latest attempt decides realized revenue.

"""
Payment Service

WHY: Orders are paid out-of-band (GCash transfer or cash on delivery), so an
admin confirms payment after the fact. An order may collect several attempts
(a rejected transfer, then a good one); reporting only trusts the latest.

DESIGN PRINCIPLES:
- Latest attempt by (created_at, id) is authoritative
- paid_at is set when an attempt becomes paid or verified, cleared otherwise
- Every status change is written to the audit trail
"""

from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Order, Payment
from ..models.orders import (
    ORDER_CANCELLED,
    PAYMENT_METHODS,
    PAYMENT_PENDING,
    PAYMENT_STATUSES,
    SETTLED_PAYMENT_STATUSES,
)
from ..time_utils import utcnow
from ..validation import coerce_int
from .audit_service import append_audit_event
from .concurrency import lock_for_update, run_with_retry


# =============================================================================
# READS
# =============================================================================

def latest_payment(order_id: int) -> Payment | None:
    return (
        db.session.query(Payment)
        .filter(Payment.order_id == order_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .first()
    )


def list_payments(order_id: int) -> list[Payment]:
    return (
        db.session.query(Payment)
        .filter(Payment.order_id == order_id)
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .all()
    )


def _locked_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


# =============================================================================
# WRITES
# =============================================================================

def verify_payment(
    order_id: int,
    status: str,
    *,
    reference_number: str | None = None,
    actor: str | None = None,
) -> Payment:
    """
    Set the status of the order's latest payment attempt.

    Creates an attempt for the full order total when none exists yet.
    """
    status = (status or "").strip()
    if status not in PAYMENT_STATUSES:
        raise ValidationError(f"payment status must be one of {sorted(PAYMENT_STATUSES)}")
    reference_number = (reference_number or "").strip() or None

    def _op():
        order = _locked_order(order_id)
        payment = latest_payment(order.id)
        previous = payment.status if payment else None

        if payment is None:
            payment = Payment(
                order_id=order.id,
                method=order.payment_method,
                amount_cents=order.total_cents,
                status=status,
            )
            db.session.add(payment)

        payment.status = status
        if status in SETTLED_PAYMENT_STATUSES:
            payment.paid_at = payment.paid_at or utcnow()
        else:
            payment.paid_at = None
        if reference_number:
            payment.reference_number = reference_number
        db.session.flush()

        append_audit_event(
            event_type="payment.status_changed",
            entity_type="order",
            entity_id=order.id,
            actor=actor,
            payload={"payment_id": payment.id, "from": previous, "to": status},
        )
        db.session.commit()
        current_app.logger.info(
            "Payment %s on order %s: %s -> %s",
            payment.id,
            order.order_code,
            previous,
            status,
        )
        return payment

    return run_with_retry(_op)


def record_payment(
    order_id: int,
    method: str,
    amount_cents,
    *,
    reference_number: str | None = None,
    proof_url: str | None = None,
    actor: str | None = None,
) -> Payment:
    """Add a new pending attempt; it becomes the authoritative one."""
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payment method must be one of {sorted(PAYMENT_METHODS)}")
    amount_cents = coerce_int(amount_cents, "amount_cents")
    if amount_cents < 0:
        raise ValidationError("amount_cents must be >= 0")

    def _op():
        order = _locked_order(order_id)
        if order.status == ORDER_CANCELLED:
            raise ValidationError(
                "Cannot record a payment for a cancelled order",
                details={"order_id": order.id},
            )

        payment = Payment(
            order_id=order.id,
            method=method,
            amount_cents=amount_cents,
            status=PAYMENT_PENDING,
            reference_number=(reference_number or "").strip() or None,
            proof_url=(proof_url or "").strip() or None,
        )
        db.session.add(payment)
        db.session.flush()

        append_audit_event(
            event_type="payment.recorded",
            entity_type="order",
            entity_id=order.id,
            actor=actor,
            payload={"payment_id": payment.id, "method": method, "amount_cents": amount_cents},
        )
        db.session.commit()
        return payment

    return run_with_retry(_op)
