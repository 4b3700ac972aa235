import pytest

from tenpeso.errors import NotFoundError, ValidationError
from tenpeso.models import AuditEvent, Product
from tenpeso.services import catalog_service, ledger_service


class TestCatalogService:

    def test_create_defaults(self, db_session):
        product = catalog_service.create_product({"name": "Skyflakes", "price_cents": 1000})

        assert product.category == "Uncategorized"
        assert product.stock_qty == 0
        assert product.cost_cents == 0
        assert product.is_active is True

    def test_create_requires_name_and_price(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"name": "No price"})

    def test_stock_not_writable(self, db_session, product_a):
        with pytest.raises(ValidationError):
            catalog_service.create_product({"name": "Sneaky", "price_cents": 100, "stock_qty": 50})
        with pytest.raises(ValidationError):
            catalog_service.update_product(product_a.id, {"stock_qty": 50})

    def test_negative_price_rejected(self, db_session, product_a):
        with pytest.raises(ValidationError):
            catalog_service.update_product(product_a.id, {"price_cents": -1})

    def test_update_is_audited(self, db_session, product_a):
        catalog_service.update_product(product_a.id, {"price_cents": 250}, actor="admin")

        assert db_session.get(Product, product_a.id).price_cents == 250
        event = db_session.query(AuditEvent).filter_by(event_type="product.updated").one()
        assert event.payload == {"before": {"price_cents": 200}, "after": {"price_cents": 250}}

    def test_update_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.update_product(404, {"price_cents": 1})

    def test_storefront_groups_active_products(self, db_session, product_a, product_b, make_product):
        make_product(name="Hidden", category="Drinks", is_active=False)
        ledger_service.receive_batch([{"product_id": product_b.id, "qty": 3, "unit_cost_cents": 10}])

        groups = {g["category"]: g["products"] for g in catalog_service.list_storefront_products()}

        assert set(groups) == {"Noodles", "Drinks"}
        assert [p["name"] for p in groups["Drinks"]] == ["Product B"]
        assert groups["Drinks"][0]["stock_qty"] == 3
        assert "cost_cents" not in groups["Drinks"][0]

    def test_correct_stock_audits_before_and_after(self, db_session, product_a):
        catalog_service.correct_stock(product_a.id, "12", note="recount", actor="admin")

        assert db_session.get(Product, product_a.id).stock_qty == 12
        event = db_session.query(AuditEvent).filter_by(event_type="product.stock_corrected").one()
        assert event.payload == {"before": 0, "after": 12}
        assert event.note == "recount"

    def test_correct_stock_rejects_negative(self, db_session, product_a):
        with pytest.raises(ValidationError):
            catalog_service.correct_stock(product_a.id, -1)
