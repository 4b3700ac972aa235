from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


DEFAULT_CATEGORY = "Uncategorized"


class Product(db.Model):
    """
    Sellable catalog item.

    STOCK DESIGN DECISION:
    stock_qty is a cached aggregate of InventoryLot.qty_remaining for the
    product. Only the batch ledger, the FIFO allocator, order cancellation and
    an audited manual correction write it. Product edits never touch it.

    cost_cents is the default cost, used only for products that have never
    been received through a batch.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_active", "category", "is_active"),
        db.CheckConstraint("stock_qty >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False, default=DEFAULT_CATEGORY)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_qty = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Opaque storage URL; uploads are handled elsewhere
    photo_url = db.Column(db.String(1024), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock_qty={self.stock_qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock_qty": self.stock_qty,
            "is_active": self.is_active,
            "photo_url": self.photo_url,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "stock_qty": self.stock_qty,
            "photo_url": self.photo_url,
        }
