"""
Payment verification tests.

Verifies:
- The latest attempt is the one being verified
- paid_at follows the settled statuses
- A payment row is created when an order has none
- Order status is never touched by payment changes
"""

import pytest

from conftest import pickup_fields
from tenpeso.errors import NotFoundError, ValidationError
from tenpeso.models import AuditEvent, Order, Payment
from tenpeso.services import ledger_service, order_service, payment_service


@pytest.fixture
def order_id(db_session, product_a):
    ledger_service.receive_batch([{"product_id": product_a.id, "qty": 10, "unit_cost_cents": 100}])
    result = order_service.place_order(pickup_fields(), [{"product_id": product_a.id, "qty": 3}])
    return result["order_id"]


class TestVerifyPayment:

    def test_mark_paid_sets_paid_at(self, db_session, order_id):
        payment = payment_service.verify_payment(order_id, "paid", actor="admin")

        assert payment.status == "paid"
        assert payment.paid_at is not None
        assert db_session.query(Payment).filter_by(order_id=order_id).count() == 1

        event = db_session.query(AuditEvent).filter_by(event_type="payment.status_changed").one()
        assert event.payload["from"] == "pending"
        assert event.payload["to"] == "paid"

    def test_reject_clears_paid_at(self, db_session, order_id):
        payment_service.verify_payment(order_id, "verified")
        payment = payment_service.verify_payment(order_id, "rejected")

        assert payment.status == "rejected"
        assert payment.paid_at is None

    def test_reference_number_updated(self, db_session, order_id):
        payment = payment_service.verify_payment(order_id, "paid", reference_number=" 1234567890 ")
        assert payment.reference_number == "1234567890"

    def test_creates_payment_when_missing(self, db_session, order_id):
        db_session.query(Payment).filter_by(order_id=order_id).delete()
        db_session.commit()

        payment = payment_service.verify_payment(order_id, "paid")

        order = db_session.get(Order, order_id)
        assert payment.amount_cents == order.total_cents
        assert payment.method == order.payment_method
        assert payment.status == "paid"

    def test_order_status_untouched(self, db_session, order_id):
        payment_service.verify_payment(order_id, "paid")
        assert db_session.get(Order, order_id).status == "pending"

    def test_unknown_status(self, db_session, order_id):
        with pytest.raises(ValidationError):
            payment_service.verify_payment(order_id, "refunded")

    def test_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            payment_service.verify_payment(31337, "paid")


class TestRecordPayment:

    def test_new_attempt_becomes_latest(self, db_session, order_id):
        payment_service.verify_payment(order_id, "rejected")
        attempt = payment_service.record_payment(order_id, "gcash", 600, reference_number="REF-2")

        latest = payment_service.latest_payment(order_id)
        assert latest.id == attempt.id
        assert latest.status == "pending"
        assert len(payment_service.list_payments(order_id)) == 2

    def test_verify_targets_latest_attempt(self, db_session, order_id):
        first = payment_service.latest_payment(order_id)
        second = payment_service.record_payment(order_id, "gcash", 600)

        payment_service.verify_payment(order_id, "verified")

        assert db_session.get(Payment, second.id).status == "verified"
        assert db_session.get(Payment, first.id).status == "pending"

    def test_cancelled_order_rejected(self, db_session, order_id):
        order_service.cancel_order(order_id)
        with pytest.raises(ValidationError):
            payment_service.record_payment(order_id, "cod", 600)

    def test_bad_method(self, db_session, order_id):
        with pytest.raises(ValidationError):
            payment_service.record_payment(order_id, "card", 600)

    def test_negative_amount(self, db_session, order_id):
        with pytest.raises(ValidationError):
            payment_service.record_payment(order_id, "cod", -1)
