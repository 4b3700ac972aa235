"""
Stock cache vs lot ledger.

After any mix of receipts, orders, cancellations and deletions, every product
with lots has stock_qty == SUM(qty_remaining), and lots drain oldest first.
"""

from conftest import pickup_fields
from tenpeso.models import InventoryLot, OrderItemLotAllocation, Product
from tenpeso.services import ledger_service, order_service, reporting_service


def _assert_stock_matches_lots(db_session):
    totals = ledger_service.lot_totals_by_product()
    for product in db_session.query(Product).all():
        if product.id in totals:
            assert product.stock_qty == totals[product.id], product.name
    assert reporting_service.stock_discrepancies() == []


def test_mixed_workload_keeps_stock_and_lots_in_sync(db_session, product_a, product_b):
    ledger_service.receive_batch([
        {"product_id": product_a.id, "qty": 4, "unit_cost_cents": 100},
        {"product_id": product_b.id, "qty": 6, "unit_cost_cents": 40},
    ])
    _assert_stock_matches_lots(db_session)

    first = order_service.place_order(
        pickup_fields(),
        [{"product_id": product_a.id, "qty": 3}, {"product_id": product_b.id, "qty": 2}],
    )
    _assert_stock_matches_lots(db_session)

    ledger_service.receive_batch([{"product_id": product_a.id, "qty": 5, "unit_cost_cents": 120}])
    second = order_service.place_order(pickup_fields(), [{"product_id": product_a.id, "qty": 4}])
    _assert_stock_matches_lots(db_session)

    order_service.cancel_order(first["order_id"])
    _assert_stock_matches_lots(db_session)

    third = order_service.place_order(pickup_fields(), [{"product_id": product_b.id, "qty": 6}])
    _assert_stock_matches_lots(db_session)

    order_service.delete_order(second["order_id"])
    _assert_stock_matches_lots(db_session)

    order_service.transition_status(third["order_id"], "completed")
    order_service.delete_order(third["order_id"])
    _assert_stock_matches_lots(db_session)

    assert db_session.get(Product, product_a.id).stock_qty == 9
    assert db_session.get(Product, product_b.id).stock_qty == 0


def test_no_lot_consumed_before_an_older_one(db_session, product_a):
    costs = [100, 110, 120]
    for cost in costs:
        ledger_service.receive_batch([{"product_id": product_a.id, "qty": 2, "unit_cost_cents": cost}])

    for _ in range(5):
        order_service.place_order(pickup_fields(), [{"product_id": product_a.id, "qty": 1}])

        lots = (
            db_session.query(InventoryLot)
            .filter_by(product_id=product_a.id)
            .order_by(InventoryLot.created_at, InventoryLot.id)
            .all()
        )
        open_seen = False
        for lot in lots:
            # once a lot still has stock, every newer lot must be untouched
            if open_seen:
                assert lot.qty_remaining == lot.qty_received
            if lot.qty_remaining > 0:
                open_seen = True

    allocation_costs = [
        a.unit_cost_cents
        for a in db_session.query(OrderItemLotAllocation).order_by(OrderItemLotAllocation.id).all()
    ]
    assert allocation_costs == [100, 100, 110, 110, 120]
