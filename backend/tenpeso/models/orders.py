from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


ORDER_PENDING = "pending"
ORDER_CONFIRMED = "confirmed"
ORDER_PREPARING = "preparing"
ORDER_READY = "ready"
ORDER_OUT_FOR_DELIVERY = "out_for_delivery"
ORDER_COMPLETED = "completed"
ORDER_CANCELLED = "cancelled"

# Forward order of the fulfilment pipeline; cancelled sits outside it.
ORDER_STATUS_FLOW = [
    ORDER_PENDING,
    ORDER_CONFIRMED,
    ORDER_PREPARING,
    ORDER_READY,
    ORDER_OUT_FOR_DELIVERY,
    ORDER_COMPLETED,
]
ORDER_STATUSES = set(ORDER_STATUS_FLOW) | {ORDER_CANCELLED}
TERMINAL_ORDER_STATUSES = {ORDER_COMPLETED, ORDER_CANCELLED}
OPEN_ORDER_STATUSES = [
    ORDER_PENDING,
    ORDER_CONFIRMED,
    ORDER_PREPARING,
    ORDER_READY,
    ORDER_OUT_FOR_DELIVERY,
]

FULFILLMENT_PICKUP = "pickup"
FULFILLMENT_DELIVERY = "delivery"
FULFILLMENTS = {FULFILLMENT_PICKUP, FULFILLMENT_DELIVERY}

PAYMENT_METHOD_GCASH = "gcash"
PAYMENT_METHOD_COD = "cod"
PAYMENT_METHODS = {PAYMENT_METHOD_GCASH, PAYMENT_METHOD_COD}

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_VERIFIED = "verified"
PAYMENT_REJECTED = "rejected"
PAYMENT_STATUSES = {PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_VERIFIED, PAYMENT_REJECTED}
SETTLED_PAYMENT_STATUSES = {PAYMENT_PAID, PAYMENT_VERIFIED}


class Order(db.Model):
    """
    Customer order placed through checkout.

    TOTALS: subtotal_cents equals the sum of item line totals and
    total_cents = subtotal_cents + delivery_fee_cents. Both are written once at
    placement; prices are captured then and never recomputed.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-facing short code (e.g., "FDS-7QX2KM")
    order_code = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_name = db.Column(db.String(120), nullable=False)
    contact = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    fulfillment = db.Column(db.String(16), nullable=False)
    pickup_location = db.Column(db.String(120), nullable=True)
    delivery_location = db.Column(db.String(255), nullable=True)

    payment_method = db.Column(db.String(16), nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    delivery_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(24), nullable=False, default=ORDER_PENDING, index=True)

    # Free-text feedback left on the confirmation page
    suggestion = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    allocations = db.relationship(
        "OrderItemLotAllocation",
        backref="order",
        lazy=True,
        order_by="OrderItemLotAllocation.id",
        cascade="all, delete-orphan",
    )
    payments = db.relationship(
        "Payment",
        backref="order",
        lazy=True,
        order_by="Payment.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} code={self.order_code!r} status={self.status}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_code": self.order_code,
            "customer_name": self.customer_name,
            "contact": self.contact,
            "notes": self.notes,
            "fulfillment": self.fulfillment,
            "pickup_location": self.pickup_location,
            "delivery_location": self.delivery_location,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "delivery_fee_cents": self.delivery_fee_cents,
            "total_cents": self.total_cents,
            "status": self.status,
            "suggestion": self.suggestion,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    One product line on an order.

    Snapshots (name, category, price) are denormalized at order time so later
    product edits do not rewrite history. unit_cost_cents is the weighted
    average of the FIFO allocations backing this line.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.UniqueConstraint("order_id", "product_id", name="uq_order_items_order_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    name_snapshot = db.Column(db.String(255), nullable=False)
    category_snapshot = db.Column(db.String(120), nullable=False)

    qty = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "name_snapshot": self.name_snapshot,
            "category_snapshot": self.category_snapshot,
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
        }

    def to_public_dict(self) -> dict:
        """Customer-facing line; the FIFO cost stays admin-only."""
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name_snapshot": self.name_snapshot,
            "category_snapshot": self.category_snapshot,
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class OrderItemLotAllocation(db.Model):
    """
    Quantity of an order line drawn from one lot.

    lot_id is NULL for the unreceived-product fallback (sold at the product's
    default cost with no backing lot). released_at is set when a cancellation
    returns the quantity to its lot; released rows no longer count as sold.
    """
    __tablename__ = "order_item_lot_allocations"
    __table_args__ = (
        db.Index("ix_allocations_order_product", "order_id", "product_id"),
        db.CheckConstraint("qty > 0", name="ck_allocations_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    lot_id = db.Column(db.Integer, db.ForeignKey("inventory_lots.id"), nullable=True, index=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    released_at = db.Column(db.DateTime(timezone=True), nullable=True)

    lot = db.relationship("InventoryLot")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "lot_id": self.lot_id,
            "qty": self.qty,
            "unit_cost_cents": self.unit_cost_cents,
            "created_at": to_utc_z(self.created_at),
            "released_at": to_utc_z(self.released_at) if self.released_at else None,
        }


class Payment(db.Model):
    """
    Payment attempt for an order.

    An order may collect several attempts; the latest by (created_at, id) is
    authoritative for realized reporting.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_order_created", "order_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    method = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING, index=True)

    # GCash transaction id (or "TO-FOLLOW")
    reference_number = db.Column(db.String(128), nullable=True)

    # Proof image URL; storage is external
    proof_url = db.Column(db.String(1024), nullable=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "reference_number": self.reference_number,
            "proof_url": self.proof_url,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
