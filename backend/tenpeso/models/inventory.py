from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class InventoryBatch(db.Model):
    """
    One inventory-receiving event.

    IMMUTABLE: batches are never updated or deleted. A batch groups the lots
    created together by a single receipt.
    """
    __tablename__ = "inventory_batches"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable, sortable code (e.g., "B-20260117-093012-7QX2")
    batch_code = db.Column(db.String(40), nullable=False, unique=True, index=True)
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<InventoryBatch id={self.id} code={self.batch_code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_code": self.batch_code,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryLot(db.Model):
    """
    Cost-tracked slice of one product's stock from one batch.

    INVARIANT: 0 <= qty_remaining <= qty_received.
    FIFO ORDER: (created_at, id) ascending.
    """
    __tablename__ = "inventory_lots"
    __table_args__ = (
        db.Index("ix_lots_product_fifo", "product_id", "created_at", "id"),
        db.CheckConstraint("qty_received > 0", name="ck_lots_qty_received_positive"),
        db.CheckConstraint(
            "qty_remaining >= 0 AND qty_remaining <= qty_received",
            name="ck_lots_qty_remaining_range",
        ),
        db.CheckConstraint("unit_cost_cents >= 0", name="ck_lots_unit_cost_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("inventory_batches.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    qty_received = db.Column(db.Integer, nullable=False)
    qty_remaining = db.Column(db.Integer, nullable=False)

    # Cost basis for FIFO, fixed at receipt time
    unit_cost_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    batch = db.relationship("InventoryBatch", backref=db.backref("lots", lazy=True, order_by="InventoryLot.id"))
    product = db.relationship("Product", backref=db.backref("lots", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InventoryLot id={self.id} product_id={self.product_id} "
            f"remaining={self.qty_remaining}/{self.qty_received}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "product_id": self.product_id,
            "qty_received": self.qty_received,
            "qty_remaining": self.qty_remaining,
            "unit_cost_cents": self.unit_cost_cents,
            "created_at": to_utc_z(self.created_at),
        }
