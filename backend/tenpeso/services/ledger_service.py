# Overview: Inventory batch ledger: receipts, lots, and batch drill-down reads.

from __future__ import annotations

import secrets
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryBatch, InventoryLot, Product
from ..time_utils import business_tz, to_utc_z, utcnow
from ..validation import parse_receive_items
from .audit_service import append_audit_event
from .concurrency import begin_write, flush_unique_code, lock_for_update, run_with_retry
"""
Inventory ledger invariants (authoritative)

- Batches and lots are append-only; a lot's qty_received and unit_cost_cents
  never change after receipt.
- 0 <= qty_remaining <= qty_received for every lot.
- Product.stock_qty == SUM(qty_remaining) over the product's lots, for every
  product that has lots (manual corrections excepted, see stock_discrepancies).
- A receipt is all-or-nothing: one batch, one lot per line, one stock
  increment per line, in a single transaction.
"""


BATCH_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
BATCH_CODE_SUFFIX_LEN = 4


def generate_batch_code(now: datetime, tz) -> str:
    """B-<local date>-<local time>-<random suffix>; sorts by receipt time."""
    local = now.replace(tzinfo=timezone.utc).astimezone(tz)
    suffix = "".join(secrets.choice(BATCH_CODE_ALPHABET) for _ in range(BATCH_CODE_SUFFIX_LEN))
    return f"B-{local:%Y%m%d}-{local:%H%M%S}-{suffix}"


def _unique_batch_code(now: datetime, tz, attempts: int = 5) -> str:
    for _ in range(attempts):
        code = generate_batch_code(now, tz)
        taken = db.session.query(InventoryBatch.id).filter_by(batch_code=code).first()
        if taken is None:
            return code
    raise ValidationError("Could not allocate a unique batch code, try again")


def receive_batch(items, note: str | None = None, *, actor: str | None = None) -> dict:
    """
    Receive stock for one or more products as a single batch.

    Every line becomes a lot with qty_remaining = qty_received = qty, and the
    product's cached stock_qty grows by qty. Any bad line rejects the batch.
    """
    lines = parse_receive_items(items)
    note = (note or "").strip() or None
    tz = business_tz(current_app.config["BUSINESS_TIMEZONE"])

    def _op():
        begin_write()

        product_ids = sorted({line["product_id"] for line in lines})
        locked = lock_for_update(
            db.session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id.asc())
        ).all()
        products = {p.id: p for p in locked}

        for index, line in enumerate(lines):
            product = products.get(line["product_id"])
            if product is None:
                raise NotFoundError(
                    f"item {index}: product {line['product_id']} not found",
                    details={"item_index": index, "product_id": line["product_id"]},
                )
            if not product.is_active:
                raise ValidationError(
                    f"item {index}: {product.name} is inactive",
                    details={"item_index": index, "product_id": product.id},
                )

        now = utcnow()
        batch = InventoryBatch(batch_code=_unique_batch_code(now, tz), note=note, created_at=now)
        db.session.add(batch)
        flush_unique_code("batch_code", batch.batch_code)

        for line in lines:
            db.session.add(
                InventoryLot(
                    batch_id=batch.id,
                    product_id=line["product_id"],
                    qty_received=line["qty"],
                    qty_remaining=line["qty"],
                    unit_cost_cents=line["unit_cost_cents"],
                    created_at=now,
                )
            )
            products[line["product_id"]].stock_qty += line["qty"]
        db.session.flush()

        append_audit_event(
            event_type="inventory.batch_received",
            entity_type="inventory_batch",
            entity_id=batch.id,
            actor=actor,
            note=note,
            payload={"batch_code": batch.batch_code, "items": lines},
            occurred_at=now,
        )

        db.session.commit()
        current_app.logger.info(
            "Received batch %s: %d line(s), %d unit(s)",
            batch.batch_code,
            len(lines),
            sum(line["qty"] for line in lines),
        )
        return {"batch_id": batch.id, "batch_code": batch.batch_code}

    return run_with_retry(_op)


def list_batches(*, category: str | None = None, limit: int = 200) -> list[dict]:
    """
    Batch summaries, newest first.

    With a category, only lots of products in that category are counted and
    batches without such lots are left out.
    """
    q = db.session.query(
        InventoryBatch.id,
        InventoryBatch.batch_code,
        InventoryBatch.created_at,
        InventoryBatch.note,
        func.count(func.distinct(InventoryLot.product_id)).label("distinct_products"),
        func.coalesce(func.sum(InventoryLot.qty_received), 0).label("units_received"),
        func.coalesce(func.sum(InventoryLot.qty_remaining), 0).label("units_remaining"),
        func.coalesce(func.sum(InventoryLot.qty_received * InventoryLot.unit_cost_cents), 0).label("cost"),
    ).join(InventoryLot, InventoryLot.batch_id == InventoryBatch.id)

    if category:
        q = q.join(Product, Product.id == InventoryLot.product_id).filter(Product.category == category)

    rows = (
        q.group_by(
            InventoryBatch.id,
            InventoryBatch.batch_code,
            InventoryBatch.created_at,
            InventoryBatch.note,
        )
        .order_by(InventoryBatch.created_at.desc(), InventoryBatch.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "batch_id": row.id,
            "batch_code": row.batch_code,
            "created_at": to_utc_z(row.created_at),
            "note": row.note,
            "distinct_products": int(row.distinct_products or 0),
            "total_units_received": int(row.units_received or 0),
            "total_units_remaining": int(row.units_remaining or 0),
            "total_cost_cents": int(row.cost or 0),
        }
        for row in rows
    ]


def get_batch(batch_id: int) -> dict:
    batch = db.session.get(InventoryBatch, batch_id)
    if batch is None:
        raise NotFoundError(f"Batch {batch_id} not found", details={"batch_id": batch_id})

    rows = (
        db.session.query(InventoryLot, Product)
        .join(Product, Product.id == InventoryLot.product_id)
        .filter(InventoryLot.batch_id == batch_id)
        .order_by(InventoryLot.id.asc())
        .all()
    )
    lines = [
        {
            "lot_id": lot.id,
            "product_id": product.id,
            "product_name": product.name,
            "category": product.category,
            "price_cents": product.price_cents,
            "qty_received": lot.qty_received,
            "qty_remaining": lot.qty_remaining,
            "unit_cost_cents": lot.unit_cost_cents,
            "line_cost_cents": lot.qty_received * lot.unit_cost_cents,
        }
        for lot, product in rows
    ]
    data = batch.to_dict()
    data["lines"] = lines
    data["total_units_received"] = sum(line["qty_received"] for line in lines)
    data["total_cost_cents"] = sum(line["line_cost_cents"] for line in lines)
    return data


def list_lots(product_id: int, *, only_open: bool = False) -> list[InventoryLot]:
    """Lots of a product in FIFO consumption order."""
    if db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    q = db.session.query(InventoryLot).filter(InventoryLot.product_id == product_id)
    if only_open:
        q = q.filter(InventoryLot.qty_remaining > 0)
    return q.order_by(InventoryLot.created_at.asc(), InventoryLot.id.asc()).all()


def lot_totals_by_product(product_ids: list[int] | None = None) -> dict[int, int]:
    """SUM(qty_remaining) per product that has at least one lot."""
    q = db.session.query(
        InventoryLot.product_id,
        func.coalesce(func.sum(InventoryLot.qty_remaining), 0),
    )
    if product_ids is not None:
        q = q.filter(InventoryLot.product_id.in_(product_ids))
    return {pid: int(total or 0) for pid, total in q.group_by(InventoryLot.product_id).all()}
