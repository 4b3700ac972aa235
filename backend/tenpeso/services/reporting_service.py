# Overview: Profit reporting; realized vs pipeline aggregates derived from settlement rows.

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import and_, func, select

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    InventoryBatch,
    InventoryLot,
    Order,
    OrderItem,
    OrderItemLotAllocation,
    Payment,
    Product,
)
from ..models.orders import (
    OPEN_ORDER_STATUSES,
    ORDER_CANCELLED,
    SETTLED_PAYMENT_STATUSES,
)
from ..time_utils import business_tz, local_day_bounds, local_today, parse_day, to_utc_z
from .expense_service import expense_totals_by_batch
from .ledger_service import lot_totals_by_product
"""
Reporting rules

- pipeline: every non-cancelled order.
- realized: pipeline orders whose latest payment (by created_at, id) is paid
  or verified.
- Revenue is the order subtotal; the delivery fee is added only when
  REVENUE_INCLUDES_DELIVERY_FEE is on.
- COGS is SUM(qty * unit_cost_cents) over order items.
- Days are business days in BUSINESS_TIMEZONE.
- Reports only read; nothing here locks or writes.
"""


MODE_PIPELINE = "pipeline"
MODE_REALIZED = "realized"
REPORT_MODES = (MODE_PIPELINE, MODE_REALIZED)

MAX_WINDOW_DAYS = 366


def _check_mode(mode: str | None) -> str:
    mode = (mode or MODE_REALIZED).strip().lower()
    if mode not in REPORT_MODES:
        raise ValidationError(f"mode must be one of {list(REPORT_MODES)}", details={"mode": mode})
    return mode


def _tz():
    return business_tz(current_app.config["BUSINESS_TIMEZONE"])


def _resolve_day(day, tz):
    try:
        parsed = parse_day(day)
    except ValueError as exc:
        raise ValidationError("day must be YYYY-MM-DD", details={"day": str(day)}) from exc
    return parsed or local_today(tz)


def latest_payment_status():
    """Correlated scalar subquery: status of the order's latest payment."""
    return (
        select(Payment.status)
        .where(Payment.order_id == Order.id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .limit(1)
        .correlate(Order)
        .scalar_subquery()
    )


def _mode_filters(mode: str) -> list:
    filters = [Order.status != ORDER_CANCELLED]
    if mode == MODE_REALIZED:
        filters.append(latest_payment_status().in_(sorted(SETTLED_PAYMENT_STATUSES)))
    return filters


def daily_profit(day=None, mode: str = MODE_REALIZED) -> dict:
    mode = _check_mode(mode)
    tz = _tz()
    day = _resolve_day(day, tz)
    start, end = local_day_bounds(day, tz)
    window = [Order.created_at >= start, Order.created_at < end, *_mode_filters(mode)]

    orders_count, subtotal, fees = db.session.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.subtotal_cents), 0),
        func.coalesce(func.sum(Order.delivery_fee_cents), 0),
    ).filter(*window).one()

    cogs = (
        db.session.query(func.coalesce(func.sum(OrderItem.qty * OrderItem.unit_cost_cents), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(*window)
        .scalar()
    )

    revenue = int(subtotal or 0)
    if current_app.config.get("REVENUE_INCLUDES_DELIVERY_FEE"):
        revenue += int(fees or 0)
    cogs = int(cogs or 0)

    return {
        "day": day.isoformat(),
        "mode": mode,
        "orders_count": int(orders_count or 0),
        "revenue_cents": revenue,
        "cogs_cents": cogs,
        "profit_cents": revenue - cogs,
    }


def top_products(window_days=7, mode: str = MODE_REALIZED, limit: int = 10) -> list[dict]:
    """Products ranked by profit over the last window_days business days, today included."""
    mode = _check_mode(mode)
    if isinstance(window_days, bool) or not isinstance(window_days, int):
        raise ValidationError("window_days must be an integer")
    if window_days < 1 or window_days > MAX_WINDOW_DAYS:
        raise ValidationError(f"window_days must be between 1 and {MAX_WINDOW_DAYS}")

    tz = _tz()
    today = local_today(tz)
    start, _ = local_day_bounds(today - timedelta(days=window_days - 1), tz)
    _, end = local_day_bounds(today, tz)

    qty_sold = func.coalesce(func.sum(OrderItem.qty), 0)
    revenue = func.coalesce(func.sum(OrderItem.line_total_cents), 0)
    cogs = func.coalesce(func.sum(OrderItem.qty * OrderItem.unit_cost_cents), 0)
    profit = (revenue - cogs).label("profit")

    rows = (
        db.session.query(
            OrderItem.product_id,
            Product.name,
            qty_sold.label("qty_sold"),
            revenue.label("revenue"),
            cogs.label("cogs"),
            profit,
        )
        .join(Order, Order.id == OrderItem.order_id)
        .join(Product, Product.id == OrderItem.product_id)
        .filter(Order.created_at >= start, Order.created_at < end, *_mode_filters(mode))
        .group_by(OrderItem.product_id, Product.name)
        .order_by(profit.desc(), OrderItem.product_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "qty_sold": int(row.qty_sold or 0),
            "revenue_cents": int(row.revenue or 0),
            "cogs_cents": int(row.cogs or 0),
            "profit_cents": int(row.profit or 0),
        }
        for row in rows
    ]


def batch_profit(mode: str = MODE_REALIZED, batch_id: int | None = None) -> list[dict]:
    """
    Revenue and cost traced back to the receiving batch.

    Only unreleased, lot-backed allocations count; revenue is the allocated
    quantity at the item's unit price. Expenses tied to the batch are
    subtracted for net_profit_cents.
    """
    mode = _check_mode(mode)
    if batch_id is not None and db.session.get(InventoryBatch, batch_id) is None:
        raise NotFoundError(f"Batch {batch_id} not found", details={"batch_id": batch_id})

    stock_q = db.session.query(
        InventoryBatch.id,
        InventoryBatch.batch_code,
        InventoryBatch.created_at,
        func.coalesce(func.sum(InventoryLot.qty_received), 0).label("received"),
        func.coalesce(func.sum(InventoryLot.qty_remaining), 0).label("remaining"),
    ).join(InventoryLot, InventoryLot.batch_id == InventoryBatch.id)
    if batch_id is not None:
        stock_q = stock_q.filter(InventoryBatch.id == batch_id)
    stock_rows = (
        stock_q.group_by(InventoryBatch.id, InventoryBatch.batch_code, InventoryBatch.created_at)
        .order_by(InventoryBatch.created_at.desc(), InventoryBatch.id.desc())
        .all()
    )

    sold_q = (
        db.session.query(
            InventoryLot.batch_id,
            func.coalesce(func.sum(OrderItemLotAllocation.qty), 0),
            func.coalesce(func.sum(OrderItemLotAllocation.qty * OrderItem.unit_price_cents), 0),
            func.coalesce(func.sum(OrderItemLotAllocation.qty * OrderItemLotAllocation.unit_cost_cents), 0),
        )
        .join(InventoryLot, InventoryLot.id == OrderItemLotAllocation.lot_id)
        .join(
            OrderItem,
            and_(
                OrderItem.order_id == OrderItemLotAllocation.order_id,
                OrderItem.product_id == OrderItemLotAllocation.product_id,
            ),
        )
        .join(Order, Order.id == OrderItemLotAllocation.order_id)
        .filter(OrderItemLotAllocation.released_at.is_(None), *_mode_filters(mode))
    )
    if batch_id is not None:
        sold_q = sold_q.filter(InventoryLot.batch_id == batch_id)
    sold = {
        bid: (int(units or 0), int(revenue or 0), int(cogs or 0))
        for bid, units, revenue, cogs in sold_q.group_by(InventoryLot.batch_id).all()
    }
    expenses = expense_totals_by_batch([row.id for row in stock_rows])

    report = []
    for row in stock_rows:
        units_sold, revenue, cogs = sold.get(row.id, (0, 0, 0))
        report.append(
            {
                "batch_id": row.id,
                "batch_code": row.batch_code,
                "created_at": to_utc_z(row.created_at),
                "mode": mode,
                "units_received": int(row.received or 0),
                "units_remaining": int(row.remaining or 0),
                "units_sold": units_sold,
                "revenue_cents": revenue,
                "cogs_cents": cogs,
                "profit_cents": revenue - cogs,
                "expenses_cents": expenses.get(row.id, 0),
                "net_profit_cents": revenue - cogs - expenses.get(row.id, 0),
            }
        )
    return report


def dashboard_summary() -> dict:
    counts = dict(
        db.session.query(Order.status, func.count(Order.id))
        .filter(Order.status.in_(OPEN_ORDER_STATUSES))
        .group_by(Order.status)
        .all()
    )
    open_counts = {status: int(counts.get(status, 0)) for status in OPEN_ORDER_STATUSES}

    low_stock = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.stock_qty.asc(), Product.name.asc())
        .limit(current_app.config.get("LOW_STOCK_LIMIT", 8))
        .all()
    )

    return {
        "open_orders": open_counts,
        "open_orders_total": sum(open_counts.values()),
        "today": {
            MODE_PIPELINE: daily_profit(mode=MODE_PIPELINE),
            MODE_REALIZED: daily_profit(mode=MODE_REALIZED),
        },
        "low_stock": [
            {"product_id": p.id, "name": p.name, "category": p.category, "stock_qty": p.stock_qty}
            for p in low_stock
        ],
    }


def order_integrity_report() -> list[dict]:
    """Orders whose stored totals disagree with their items or with each other."""
    items_sum = (
        db.session.query(
            OrderItem.order_id.label("order_id"),
            func.sum(OrderItem.line_total_cents).label("items_subtotal"),
        )
        .group_by(OrderItem.order_id)
        .subquery()
    )
    rows = (
        db.session.query(Order, func.coalesce(items_sum.c.items_subtotal, 0))
        .outerjoin(items_sum, items_sum.c.order_id == Order.id)
        .order_by(Order.id.asc())
        .all()
    )

    report = []
    for order, items_subtotal in rows:
        items_subtotal = int(items_subtotal or 0)
        subtotal_matches = order.subtotal_cents == items_subtotal
        total_matches = order.total_cents == order.subtotal_cents + order.delivery_fee_cents
        if subtotal_matches and total_matches:
            continue
        report.append(
            {
                "order_id": order.id,
                "order_code": order.order_code,
                "subtotal_cents": order.subtotal_cents,
                "items_subtotal_cents": items_subtotal,
                "delivery_fee_cents": order.delivery_fee_cents,
                "total_cents": order.total_cents,
                "subtotal_matches_items": subtotal_matches,
                "total_matches": total_matches,
            }
        )
    return report


def stock_discrepancies() -> list[dict]:
    """Products with lots whose cached stock_qty differs from SUM(qty_remaining)."""
    totals = lot_totals_by_product()
    if not totals:
        return []
    products = (
        db.session.query(Product)
        .filter(Product.id.in_(list(totals)))
        .order_by(Product.id.asc())
        .all()
    )
    return [
        {
            "product_id": p.id,
            "name": p.name,
            "stock_qty": p.stock_qty,
            "lot_qty_remaining": totals[p.id],
            "difference": p.stock_qty - totals[p.id],
        }
        for p in products
        if p.stock_qty != totals[p.id]
    ]
