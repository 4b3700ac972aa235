import pytest

from tenpeso.errors import NotFoundError, ValidationError
from tenpeso.models import AuditEvent, Expense
from tenpeso.services import expense_service, ledger_service


@pytest.fixture
def batch(db_session, product_a):
    return ledger_service.receive_batch([{"product_id": product_a.id, "qty": 5, "unit_cost_cents": 100}])


class TestExpenseService:

    def test_create_general_expense(self, db_session):
        expense = expense_service.create_expense({"description": "Load", "amount_cents": 10000}, actor="admin")

        assert expense.category == "Others"
        assert expense.batch_id is None
        event = db_session.query(AuditEvent).filter_by(event_type="expense.created").one()
        assert event.entity_id == expense.id
        assert event.payload["amount_cents"] == 10000

    def test_create_batch_expense(self, db_session, batch):
        expense = expense_service.create_expense(
            {"description": "Tape", "amount_cents": "250", "category": "Supplies", "batch_id": batch["batch_id"]}
        )

        assert expense.amount_cents == 250
        assert [e.id for e in expense_service.list_expenses(batch_id=batch["batch_id"])] == [expense.id]
        assert expense_service.expense_totals_by_batch() == {batch["batch_id"]: 250}

    @pytest.mark.parametrize("payload", [
        {"amount_cents": 100},
        {"description": "Tape"},
        {"description": "Tape", "amount_cents": 0},
        {"description": "Tape", "amount_cents": -5},
        {"description": "Tape", "amount_cents": 12.5},
        {"description": "Tape", "amount_cents": 100, "category": "Snacks"},
        {"description": "Tape", "amount_cents": 100, "paid_by": "me"},
    ])
    def test_rejects_bad_payload(self, db_session, payload):
        with pytest.raises(ValidationError):
            expense_service.create_expense(payload)
        assert db_session.query(Expense).count() == 0

    def test_unknown_batch(self, db_session):
        with pytest.raises(NotFoundError):
            expense_service.create_expense({"description": "Tape", "amount_cents": 100, "batch_id": 999})
        assert db_session.query(Expense).count() == 0

    def test_delete_keeps_snapshot(self, db_session, batch):
        expense = expense_service.create_expense(
            {"description": "Tape", "amount_cents": 250, "batch_id": batch["batch_id"]}
        )
        expense_id = expense.id

        snapshot = expense_service.delete_expense(expense_id, actor="admin")

        assert snapshot["description"] == "Tape"
        assert db_session.get(Expense, expense_id) is None
        event = db_session.query(AuditEvent).filter_by(event_type="expense.deleted").one()
        assert event.payload["amount_cents"] == 250
        with pytest.raises(NotFoundError):
            expense_service.delete_expense(expense_id)

    def test_list_filters_by_category(self, db_session):
        expense_service.create_expense({"description": "Ads", "amount_cents": 100, "category": "Marketing"})
        expense_service.create_expense({"description": "Bulb", "amount_cents": 100, "category": "Utilities"})

        assert [e.description for e in expense_service.list_expenses(category="Marketing")] == ["Ads"]
        assert len(expense_service.list_expenses()) == 2
