# Overview: FIFO lot allocator; turns an order line's quantity into cost allocations.

from __future__ import annotations

from flask import current_app

from ..errors import InventoryInconsistencyError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryLot, OrderItemLotAllocation, Product
from ..time_utils import utcnow
from .concurrency import lock_for_update
"""
FIFO allocation rules (authoritative)

- Lots are consumed oldest first: (created_at, id) ascending.
- Each lot gives min(qty_remaining, still_needed); one allocation row per lot.
- Lots that exist but cannot cover the request are an accounting
  inconsistency: nothing is allocated and InventoryInconsistencyError is raised.
- A product with no lots at all (never received) is allocated at its default
  cost_cents with lot_id NULL, when ALLOW_UNRECEIVED_FALLBACK is on.
- allocate() neither commits nor guards re-invocation; the settlement
  transaction that calls it owns atomicity.
"""


def weighted_unit_cost(allocations: list[dict], qty: int) -> int:
    """sum(qty * cost) / qty, nearest cent (half-up)."""
    if qty <= 0:
        return 0
    total_cost = sum(a["qty"] * a["unit_cost_cents"] for a in allocations)
    return (total_cost + (qty // 2)) // qty


def allocate(
    order_id: int,
    product_id: int,
    qty_needed: int,
    *,
    allow_fallback: bool | None = None,
) -> list[dict]:
    """
    Consume qty_needed units of product_id from its oldest lots.

    Returns [{lot_id, qty, unit_cost_cents}] in consumption order. Must run
    inside the caller's transaction.
    """
    if qty_needed <= 0:
        raise ValidationError("qty_needed must be > 0")
    if allow_fallback is None:
        allow_fallback = bool(current_app.config.get("ALLOW_UNRECEIVED_FALLBACK", True))

    lots = lock_for_update(
        db.session.query(InventoryLot)
        .filter(
            InventoryLot.product_id == product_id,
            InventoryLot.qty_remaining > 0,
        )
        .order_by(InventoryLot.created_at.asc(), InventoryLot.id.asc())
    ).all()

    if not lots:
        ever_received = (
            db.session.query(InventoryLot.id).filter(InventoryLot.product_id == product_id).first()
            is not None
        )
        if not ever_received and allow_fallback:
            return [_allocate_at_default_cost(order_id, product_id, qty_needed)]

    available = sum(lot.qty_remaining for lot in lots)
    if available < qty_needed:
        current_app.logger.error(
            "FIFO shortfall for product %s on order %s: needed %d, lots hold %d",
            product_id,
            order_id,
            qty_needed,
            available,
        )
        raise InventoryInconsistencyError(
            f"Inventory lots for product {product_id} cover {available} of {qty_needed} unit(s)",
            details={
                "product_id": product_id,
                "order_id": order_id,
                "requested": qty_needed,
                "lot_available": available,
            },
        )

    allocations: list[dict] = []
    still_needed = qty_needed
    for lot in lots:
        if still_needed <= 0:
            break
        take = min(lot.qty_remaining, still_needed)
        lot.qty_remaining -= take
        still_needed -= take

        db.session.add(
            OrderItemLotAllocation(
                order_id=order_id,
                product_id=product_id,
                lot_id=lot.id,
                qty=take,
                unit_cost_cents=lot.unit_cost_cents,
            )
        )
        allocations.append({"lot_id": lot.id, "qty": take, "unit_cost_cents": lot.unit_cost_cents})

    db.session.flush()
    return allocations


def _allocate_at_default_cost(order_id: int, product_id: int, qty: int) -> dict:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    current_app.logger.warning(
        "Product %s has no received lots; allocating %d unit(s) at default cost %d",
        product_id,
        qty,
        product.cost_cents,
    )
    db.session.add(
        OrderItemLotAllocation(
            order_id=order_id,
            product_id=product_id,
            lot_id=None,
            qty=qty,
            unit_cost_cents=product.cost_cents,
        )
    )
    db.session.flush()
    return {"lot_id": None, "qty": qty, "unit_cost_cents": product.cost_cents}


def release_allocations(order_id: int) -> list[OrderItemLotAllocation]:
    """
    Return an order's unreleased allocations to their lots.

    Fallback allocations (no lot) are only stamped released. Runs inside the
    caller's transaction; the caller restores Product.stock_qty.
    """
    allocations = (
        db.session.query(OrderItemLotAllocation)
        .filter(
            OrderItemLotAllocation.order_id == order_id,
            OrderItemLotAllocation.released_at.is_(None),
        )
        .order_by(OrderItemLotAllocation.id.asc())
        .all()
    )

    lot_ids = sorted({a.lot_id for a in allocations if a.lot_id is not None})
    lots = {}
    if lot_ids:
        lots = {
            lot.id: lot
            for lot in lock_for_update(
                db.session.query(InventoryLot).filter(InventoryLot.id.in_(lot_ids)).order_by(InventoryLot.id.asc())
            ).all()
        }

    now = utcnow()
    for allocation in allocations:
        if allocation.lot_id is not None:
            lot = lots[allocation.lot_id]
            if lot.qty_remaining + allocation.qty > lot.qty_received:
                raise InventoryInconsistencyError(
                    f"Releasing allocation {allocation.id} would overfill lot {lot.id}",
                    details={"lot_id": lot.id, "allocation_id": allocation.id},
                )
            lot.qty_remaining += allocation.qty
        allocation.released_at = now

    db.session.flush()
    return allocations
