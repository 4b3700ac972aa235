from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


EXPENSE_CATEGORIES = ("Supplies", "Utilities", "Rent", "Marketing", "Others")
DEFAULT_EXPENSE_CATEGORY = "Others"


class Expense(db.Model):
    """
    Operating cost outside the lot ledger (bags, rent, load, ads).

    batch_id is optional: an expense tied to a batch is charged against that
    batch's profit; a general expense (NULL) is not attributed to any batch.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False, default=DEFAULT_EXPENSE_CATEGORY, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    batch_id = db.Column(db.Integer, db.ForeignKey("inventory_batches.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    batch = db.relationship("InventoryBatch", backref=db.backref("expenses", lazy=True))

    def __repr__(self) -> str:
        return f"<Expense id={self.id} amount_cents={self.amount_cents} batch_id={self.batch_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "category": self.category,
            "amount_cents": self.amount_cents,
            "batch_id": self.batch_id,
            "created_at": to_utc_z(self.created_at),
        }
