"""
FIFO allocator tests.

Verifies:
- Oldest lots are consumed first, one allocation per lot touched
- Weighted unit cost rounds half-up
- Short lots are an inconsistency, never a partial allocation
- Never-received products fall back to their default cost when allowed
- Releasing allocations puts quantity back on the same lots
"""

import pytest

from tenpeso.errors import InventoryInconsistencyError
from tenpeso.extensions import db
from tenpeso.models import InventoryLot, Order, OrderItemLotAllocation
from tenpeso.services import ledger_service
from tenpeso.services.fifo_service import allocate, release_allocations, weighted_unit_cost


def _order_row(db_session) -> Order:
    order = Order(
        order_code="FDS-TEST01",
        customer_name="Test",
        fulfillment="pickup",
        pickup_location="boys_411",
        payment_method="cod",
        subtotal_cents=0,
        delivery_fee_cents=0,
        total_cents=0,
    )
    db_session.add(order)
    db_session.flush()
    return order


def _receive(product, qty, cost):
    return ledger_service.receive_batch([{"product_id": product.id, "qty": qty, "unit_cost_cents": cost}])


class TestWeightedUnitCost:

    def test_single_lot(self):
        assert weighted_unit_cost([{"qty": 3, "unit_cost_cents": 100}], 3) == 100

    def test_blend_rounds_half_up(self):
        allocations = [{"qty": 1, "unit_cost_cents": 100}, {"qty": 1, "unit_cost_cents": 101}]
        assert weighted_unit_cost(allocations, 2) == 101

    def test_blend_rounds_down_below_half(self):
        allocations = [{"qty": 2, "unit_cost_cents": 100}, {"qty": 1, "unit_cost_cents": 101}]
        # 301 / 3 = 100.33
        assert weighted_unit_cost(allocations, 3) == 100

    def test_zero_qty(self):
        assert weighted_unit_cost([], 0) == 0


class TestAllocate:

    def test_consumes_oldest_lot_first(self, db_session, product_a):
        _receive(product_a, 2, 100)
        _receive(product_a, 5, 130)
        order = _order_row(db_session)

        allocations = allocate(order.id, product_a.id, 4)

        lots = ledger_service.list_lots(product_a.id)
        assert [a["qty"] for a in allocations] == [2, 2]
        assert [a["lot_id"] for a in allocations] == [lots[0].id, lots[1].id]
        assert [a["unit_cost_cents"] for a in allocations] == [100, 130]
        assert [lot.qty_remaining for lot in lots] == [0, 3]
        assert weighted_unit_cost(allocations, 4) == 115

        rows = db_session.query(OrderItemLotAllocation).filter_by(order_id=order.id).all()
        assert sum(r.qty for r in rows) == 4

    def test_single_lot_covers_request(self, db_session, product_a):
        _receive(product_a, 10, 100)
        _receive(product_a, 10, 200)
        order = _order_row(db_session)

        allocations = allocate(order.id, product_a.id, 3)
        assert len(allocations) == 1
        assert allocations[0]["unit_cost_cents"] == 100

    def test_short_lots_raise_and_allocate_nothing(self, db_session, product_a):
        _receive(product_a, 2, 100)
        order = _order_row(db_session)

        with pytest.raises(InventoryInconsistencyError) as exc:
            allocate(order.id, product_a.id, 3)
        assert exc.value.details["lot_available"] == 2
        assert exc.value.details["requested"] == 3

        assert db_session.query(OrderItemLotAllocation).count() == 0
        assert ledger_service.list_lots(product_a.id)[0].qty_remaining == 2

    def test_depleted_lots_do_not_fall_back(self, db_session, product_a):
        _receive(product_a, 1, 100)
        order = _order_row(db_session)
        allocate(order.id, product_a.id, 1)

        with pytest.raises(InventoryInconsistencyError):
            allocate(order.id, product_a.id, 1)

    def test_never_received_product_uses_default_cost(self, db_session, product_a):
        order = _order_row(db_session)

        allocations = allocate(order.id, product_a.id, 2)

        assert allocations == [{"lot_id": None, "qty": 2, "unit_cost_cents": product_a.cost_cents}]
        row = db_session.query(OrderItemLotAllocation).filter_by(order_id=order.id).one()
        assert row.lot_id is None

    def test_fallback_can_be_disabled(self, db_session, product_a):
        order = _order_row(db_session)
        with pytest.raises(InventoryInconsistencyError):
            allocate(order.id, product_a.id, 2, allow_fallback=False)

    def test_fallback_follows_config(self, app, db_session, product_a):
        order = _order_row(db_session)
        app.config["ALLOW_UNRECEIVED_FALLBACK"] = False
        try:
            with pytest.raises(InventoryInconsistencyError):
                allocate(order.id, product_a.id, 1)
        finally:
            app.config["ALLOW_UNRECEIVED_FALLBACK"] = True


class TestReleaseAllocations:

    def test_release_returns_qty_to_same_lots(self, db_session, product_a):
        _receive(product_a, 2, 100)
        _receive(product_a, 5, 130)
        order = _order_row(db_session)
        allocate(order.id, product_a.id, 4)

        released = release_allocations(order.id)

        assert len(released) == 2
        assert all(a.released_at is not None for a in released)
        assert [lot.qty_remaining for lot in ledger_service.list_lots(product_a.id)] == [2, 5]

    def test_release_is_not_repeated(self, db_session, product_a):
        _receive(product_a, 3, 100)
        order = _order_row(db_session)
        allocate(order.id, product_a.id, 3)

        release_allocations(order.id)
        assert release_allocations(order.id) == []
        assert ledger_service.list_lots(product_a.id)[0].qty_remaining == 3

    def test_release_fallback_only_stamps(self, db_session, product_a):
        order = _order_row(db_session)
        allocate(order.id, product_a.id, 2)

        released = release_allocations(order.id)
        assert released[0].lot_id is None
        assert released[0].released_at is not None
        assert db.session.query(InventoryLot).count() == 0
