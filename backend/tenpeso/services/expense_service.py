# Overview: Operating expenses, optionally charged against an inventory batch.

from __future__ import annotations

from sqlalchemy import func

from ..errors import NotFoundError
from ..extensions import db
from ..models import Expense, InventoryBatch
from ..models.expenses import DEFAULT_EXPENSE_CATEGORY, EXPENSE_CATEGORIES
from ..validation import ModelValidationPolicy, enforce_rules_expense, validate_payload
from .audit_service import append_audit_event
from .concurrency import run_with_retry


EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "category", "amount_cents", "batch_id"},
    required_on_create={"description", "amount_cents"},
)


def list_expenses(
    *,
    batch_id: int | None = None,
    category: str | None = None,
    limit: int = 500,
) -> list[Expense]:
    q = db.session.query(Expense)
    if batch_id is not None:
        q = q.filter(Expense.batch_id == batch_id)
    if category:
        q = q.filter(Expense.category == category)
    return q.order_by(Expense.created_at.desc(), Expense.id.desc()).limit(limit).all()


def expense_totals_by_batch(batch_ids: list[int] | None = None) -> dict[int, int]:
    """SUM(amount_cents) per batch; general expenses are left out."""
    q = db.session.query(Expense.batch_id, func.sum(Expense.amount_cents)).filter(Expense.batch_id.isnot(None))
    if batch_ids is not None:
        q = q.filter(Expense.batch_id.in_(batch_ids))
    return {bid: int(total or 0) for bid, total in q.group_by(Expense.batch_id).all()}


def create_expense(payload: dict, *, actor: str | None = None) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_expense(patch, EXPENSE_CATEGORIES)
    if not patch.get("category"):
        patch["category"] = DEFAULT_EXPENSE_CATEGORY

    def _op():
        batch_id = patch.get("batch_id")
        if batch_id is not None and db.session.get(InventoryBatch, batch_id) is None:
            raise NotFoundError(f"Batch {batch_id} not found", details={"batch_id": batch_id})

        expense = Expense(**patch)
        db.session.add(expense)
        db.session.flush()
        append_audit_event(
            event_type="expense.created",
            entity_type="expense",
            entity_id=expense.id,
            actor=actor,
            payload=expense.to_dict(),
        )
        db.session.commit()
        return expense

    return run_with_retry(_op)


def delete_expense(expense_id: int, *, actor: str | None = None) -> dict:
    """Hard delete; the audit event keeps the removed row."""
    def _op():
        expense = db.session.get(Expense, expense_id)
        if expense is None:
            raise NotFoundError(f"Expense {expense_id} not found", details={"expense_id": expense_id})
        snapshot = expense.to_dict()
        append_audit_event(
            event_type="expense.deleted",
            entity_type="expense",
            entity_id=expense.id,
            actor=actor,
            payload=snapshot,
        )
        db.session.delete(expense)
        db.session.commit()
        return snapshot

    return run_with_retry(_op)
