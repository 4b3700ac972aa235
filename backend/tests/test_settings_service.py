import pytest

from tenpeso.errors import NotFoundError, ValidationError
from tenpeso.models import AppSetting, AuditEvent
from tenpeso.services import settings_service


class TestSettingsService:

    def test_defaults_without_stored_values(self, db_session):
        checkout = settings_service.get_checkout_settings()

        assert checkout.enable_pickup is True
        assert checkout.enable_delivery is False
        assert checkout.pickup_locations == ["boys_411", "girls_206"]
        assert checkout.auto_paid_methods == []
        assert checkout.enabled_fulfillments() == {"pickup"}
        assert checkout.enabled_payment_methods() == {"gcash", "cod"}

    def test_set_then_get(self, db_session):
        settings_service.set_setting("delivery.fee_cents", 1500, actor="admin")

        assert settings_service.get_setting("delivery.fee_cents") == 1500
        assert settings_service.get_delivery_settings().fee_cents == 1500

        event = db_session.query(AuditEvent).filter_by(event_type="setting.updated").one()
        assert event.payload == {"key": "delivery.fee_cents", "before": None, "after": 1500}

    def test_update_existing_row(self, db_session):
        settings_service.set_setting("gcash.account_name", "TenPeso Store")
        settings_service.set_setting("gcash.account_name", "  TenPeso  ")

        assert db_session.query(AppSetting).filter_by(key="gcash.account_name").count() == 1
        assert settings_service.get_gcash_settings().account_name == "TenPeso"

    def test_string_list_cleaned(self, db_session):
        settings_service.set_setting("checkout.pickup_locations", [" lobby ", "lobby", "", "gym"])
        assert settings_service.get_setting("checkout.pickup_locations") == ["lobby", "gym"]

    @pytest.mark.parametrize("key,value", [
        ("checkout.enable_pickup", "yes"),
        ("delivery.fee_cents", "100"),
        ("delivery.fee_cents", True),
        ("delivery.fee_cents", -5),
        ("checkout.pickup_locations", "lobby"),
        ("checkout.auto_paid_methods", ["bitcoin"]),
    ])
    def test_rejects_bad_values(self, db_session, key, value):
        with pytest.raises(ValidationError):
            settings_service.set_setting(key, value)
        assert db_session.query(AppSetting).count() == 0

    def test_unknown_key(self, db_session):
        with pytest.raises(NotFoundError):
            settings_service.set_setting("checkout.enable_drones", True)
        with pytest.raises(NotFoundError):
            settings_service.get_setting("checkout.enable_drones")

    def test_invalid_stored_value_falls_back_to_default(self, db_session):
        db_session.add(AppSetting(key="delivery.fee_cents", value="free"))
        db_session.commit()

        assert settings_service.get_setting("delivery.fee_cents") == 0

    def test_seed_defaults_is_idempotent(self, db_session):
        settings_service.set_setting("delivery.fee_cents", 900)

        added = settings_service.seed_defaults()
        assert added == db_session.query(AppSetting).count() - 1
        assert settings_service.seed_defaults() == 0
        assert settings_service.get_setting("delivery.fee_cents") == 900

    def test_public_listing_hides_private_keys(self, db_session):
        public_keys = {row["key"] for row in settings_service.list_settings(public_only=True)}
        all_keys = {row["key"] for row in settings_service.list_settings()}

        assert "checkout.auto_paid_methods" not in public_keys
        assert "checkout.auto_paid_methods" in all_keys
        assert "gcash.account_number" in public_keys
