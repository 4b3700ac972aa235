"""
Profit reporting tests.

Verifies:
- Realized counts only orders whose latest payment is paid or verified
- Pipeline counts every non-cancelled order
- Business days are bucketed in the configured time zone
- Per-product and per-batch breakdowns, integrity checks
"""

from datetime import datetime

import pytest

from conftest import pickup_fields
from tenpeso.errors import NotFoundError, ValidationError
from tenpeso.models import Order
from tenpeso.services import (
    catalog_service,
    expense_service,
    ledger_service,
    order_service,
    payment_service,
    reporting_service,
    settings_service,
)


def _receive(product, qty, cost):
    return ledger_service.receive_batch([{"product_id": product.id, "qty": qty, "unit_cost_cents": cost}])


def _place(product, qty, **fields):
    return order_service.place_order(pickup_fields(**fields), [{"product_id": product.id, "qty": qty}])


ZERO = {"orders_count": 0, "revenue_cents": 0, "cogs_cents": 0, "profit_cents": 0}


def _figures(report: dict) -> dict:
    return {k: report[k] for k in ZERO}


# =============================================================================
# DAILY PROFIT
# =============================================================================


class TestDailyProfit:

    def test_paid_order_is_realized(self, db_session, product_a):
        _receive(product_a, 5, 100)
        result = _place(product_a, 3)
        payment_service.verify_payment(result["order_id"], "paid")

        report = reporting_service.daily_profit(None, "realized")

        assert _figures(report) == {
            "orders_count": 1,
            "revenue_cents": 600,
            "cogs_cents": 300,
            "profit_cents": 300,
        }
        assert report["mode"] == "realized"

    def test_pending_order_only_in_pipeline(self, db_session, product_a):
        _receive(product_a, 5, 100)
        _place(product_a, 3)

        assert _figures(reporting_service.daily_profit(None, "realized")) == ZERO
        assert _figures(reporting_service.daily_profit(None, "pipeline")) == {
            "orders_count": 1,
            "revenue_cents": 600,
            "cogs_cents": 300,
            "profit_cents": 300,
        }

    def test_cancelled_order_excluded_everywhere(self, db_session, product_a):
        _receive(product_a, 5, 100)
        result = _place(product_a, 3)
        payment_service.verify_payment(result["order_id"], "paid")
        order_service.cancel_order(result["order_id"])

        assert _figures(reporting_service.daily_profit(None, "realized")) == ZERO
        assert _figures(reporting_service.daily_profit(None, "pipeline")) == ZERO

    def test_latest_payment_decides(self, db_session, product_a):
        _receive(product_a, 5, 100)
        result = _place(product_a, 3)
        payment_service.verify_payment(result["order_id"], "paid")
        payment_service.record_payment(result["order_id"], "gcash", 600)

        assert reporting_service.daily_profit(None, "realized")["orders_count"] == 0

    def test_verified_counts_as_realized(self, db_session, product_a):
        _receive(product_a, 5, 100)
        result = _place(product_a, 1)
        payment_service.verify_payment(result["order_id"], "verified")

        assert reporting_service.daily_profit(None, "realized")["orders_count"] == 1

    def test_delivery_fee_excluded_by_default(self, app, db_session, product_a):
        settings_service.set_setting("checkout.enable_delivery", True)
        settings_service.set_setting("delivery.fee_cents", 2500)
        _receive(product_a, 5, 100)
        _place(product_a, 3, fulfillment="delivery", pickup_location=None, delivery_location="Dorm 3")

        assert reporting_service.daily_profit(None, "pipeline")["revenue_cents"] == 600

        app.config["REVENUE_INCLUDES_DELIVERY_FEE"] = True
        try:
            report = reporting_service.daily_profit(None, "pipeline")
        finally:
            app.config["REVENUE_INCLUDES_DELIVERY_FEE"] = False
        assert report["revenue_cents"] == 3100
        assert report["profit_cents"] == 3100 - 300

    def test_business_day_uses_local_time(self, db_session, product_a):
        _receive(product_a, 5, 100)
        result = _place(product_a, 1)
        order = db_session.get(Order, result["order_id"])
        # 17:00 UTC on the 16th is 01:00 on the 17th in Manila
        order.created_at = datetime(2026, 1, 16, 17, 0, 0)
        db_session.commit()

        assert reporting_service.daily_profit("2026-01-17", "pipeline")["orders_count"] == 1
        assert reporting_service.daily_profit("2026-01-16", "pipeline")["orders_count"] == 0

    def test_empty_day_is_zero(self, db_session):
        report = reporting_service.daily_profit("2026-03-01", "pipeline")
        assert report["day"] == "2026-03-01"
        assert _figures(report) == ZERO

    def test_reports_are_repeatable(self, db_session, product_a):
        _receive(product_a, 5, 100)
        result = _place(product_a, 2)
        payment_service.verify_payment(result["order_id"], "paid")

        first = reporting_service.daily_profit(None, "realized")
        second = reporting_service.daily_profit(None, "realized")
        assert first == second

    def test_unknown_mode(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.daily_profit(None, "forecast")

    def test_bad_day(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.daily_profit("17/01/2026", "realized")


# =============================================================================
# TOP PRODUCTS / BATCHES
# =============================================================================


class TestTopProducts:

    def test_ranked_by_profit(self, db_session, product_a, product_b):
        _receive(product_a, 5, 100)
        _receive(product_b, 10, 50)
        _place(product_a, 3)
        _place(product_b, 5)

        rows = reporting_service.top_products(1, "pipeline")

        assert [r["product_id"] for r in rows] == [product_b.id, product_a.id]
        assert rows[0] == {
            "product_id": product_b.id,
            "name": "Product B",
            "qty_sold": 5,
            "revenue_cents": 750,
            "cogs_cents": 250,
            "profit_cents": 500,
        }
        assert rows[1]["profit_cents"] == 300

    def test_realized_filter(self, db_session, product_a, product_b):
        _receive(product_a, 5, 100)
        _receive(product_b, 10, 50)
        paid = _place(product_a, 3)
        _place(product_b, 5)
        payment_service.verify_payment(paid["order_id"], "paid")

        rows = reporting_service.top_products(7, "realized")
        assert [r["product_id"] for r in rows] == [product_a.id]

    def test_limit(self, db_session, product_a, product_b):
        _receive(product_a, 5, 100)
        _receive(product_b, 10, 50)
        _place(product_a, 3)
        _place(product_b, 5)

        assert len(reporting_service.top_products(7, "pipeline", limit=1)) == 1

    @pytest.mark.parametrize("window_days", [0, -3, 400, "7"])
    def test_bad_window(self, db_session, window_days):
        with pytest.raises(ValidationError):
            reporting_service.top_products(window_days, "pipeline")


class TestBatchProfit:

    def test_sales_traced_to_batches(self, db_session, product_a):
        first = _receive(product_a, 2, 100)
        second = _receive(product_a, 5, 130)
        result = _place(product_a, 4)
        payment_service.verify_payment(result["order_id"], "paid")

        rows = {r["batch_id"]: r for r in reporting_service.batch_profit("realized")}

        assert rows[first["batch_id"]]["units_sold"] == 2
        assert rows[first["batch_id"]]["revenue_cents"] == 400
        assert rows[first["batch_id"]]["cogs_cents"] == 200
        assert rows[first["batch_id"]]["units_remaining"] == 0
        assert rows[second["batch_id"]]["units_sold"] == 2
        assert rows[second["batch_id"]]["cogs_cents"] == 260
        assert rows[second["batch_id"]]["profit_cents"] == 400 - 260
        assert rows[second["batch_id"]]["units_remaining"] == 3

    def test_pending_only_in_pipeline(self, db_session, product_a):
        batch = _receive(product_a, 5, 100)
        _place(product_a, 3)

        realized = reporting_service.batch_profit("realized", batch_id=batch["batch_id"])
        pipeline = reporting_service.batch_profit("pipeline", batch_id=batch["batch_id"])
        assert realized[0]["units_sold"] == 0
        assert realized[0]["units_received"] == 5
        assert pipeline[0]["units_sold"] == 3
        assert pipeline[0]["revenue_cents"] == 600

    def test_cancelled_sales_drop_out(self, db_session, product_a):
        batch = _receive(product_a, 5, 100)
        result = _place(product_a, 3)
        order_service.cancel_order(result["order_id"])

        row = reporting_service.batch_profit("pipeline", batch_id=batch["batch_id"])[0]
        assert row["units_sold"] == 0
        assert row["units_remaining"] == 5

    def test_batch_expenses_reduce_net_profit(self, db_session, product_a):
        batch = _receive(product_a, 5, 100)
        other = _receive(product_a, 5, 100)
        _place(product_a, 3)
        expense_service.create_expense(
            {"description": "Plastic bags", "amount_cents": 150, "category": "Supplies", "batch_id": batch["batch_id"]}
        )
        expense_service.create_expense({"description": "Rent", "amount_cents": 5000, "category": "Rent"})

        rows = {r["batch_id"]: r for r in reporting_service.batch_profit("pipeline")}

        assert rows[batch["batch_id"]]["profit_cents"] == 600 - 300
        assert rows[batch["batch_id"]]["expenses_cents"] == 150
        assert rows[batch["batch_id"]]["net_profit_cents"] == 600 - 300 - 150
        assert rows[other["batch_id"]]["expenses_cents"] == 0
        assert rows[other["batch_id"]]["net_profit_cents"] == 0

    def test_missing_batch(self, db_session):
        with pytest.raises(NotFoundError):
            reporting_service.batch_profit("pipeline", batch_id=999)


# =============================================================================
# DASHBOARD / INTEGRITY
# =============================================================================


class TestDashboardAndIntegrity:

    def test_dashboard_counts_open_orders(self, db_session, product_a, product_b):
        _receive(product_a, 5, 100)
        first = _place(product_a, 1)
        _place(product_a, 1)
        order_service.transition_status(first["order_id"], "confirmed")

        summary = reporting_service.dashboard_summary()

        assert summary["open_orders"]["pending"] == 1
        assert summary["open_orders"]["confirmed"] == 1
        assert summary["open_orders_total"] == 2
        assert summary["today"]["pipeline"]["orders_count"] == 2
        assert summary["today"]["realized"]["orders_count"] == 0
        assert summary["low_stock"][0]["product_id"] == product_b.id

    def test_integrity_clean(self, db_session, product_a):
        _receive(product_a, 5, 100)
        _place(product_a, 2)

        assert reporting_service.order_integrity_report() == []
        assert reporting_service.stock_discrepancies() == []

    def test_integrity_flags_tampered_totals(self, db_session, product_a):
        _receive(product_a, 5, 100)
        result = _place(product_a, 2)
        order = db_session.get(Order, result["order_id"])
        order.subtotal_cents = 999
        db_session.commit()

        rows = reporting_service.order_integrity_report()
        assert len(rows) == 1
        assert rows[0]["order_id"] == result["order_id"]
        assert rows[0]["items_subtotal_cents"] == 400
        assert rows[0]["subtotal_matches_items"] is False
        assert rows[0]["total_matches"] is False

    def test_manual_correction_shows_as_discrepancy(self, db_session, product_a):
        _receive(product_a, 5, 100)
        catalog_service.correct_stock(product_a.id, 7, note="found a box")

        rows = reporting_service.stock_discrepancies()
        assert rows == [{
            "product_id": product_a.id,
            "name": "Product A",
            "stock_qty": 7,
            "lot_qty_remaining": 5,
            "difference": 2,
        }]
