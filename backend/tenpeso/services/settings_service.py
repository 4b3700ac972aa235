from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import AppSetting
from ..settings_catalog import SETTINGS_CATALOG
from .audit_service import append_audit_event


VALUE_TYPES = {"bool", "int", "string", "string_list"}

_CATALOG_BY_KEY = {row["key"]: row for row in SETTINGS_CATALOG}


@dataclass
class CheckoutSettings:
    enable_pickup: bool
    enable_delivery: bool
    enable_gcash: bool
    enable_cod: bool
    delivery_fee_cents: int
    pickup_locations: list[str] = field(default_factory=list)
    auto_paid_methods: list[str] = field(default_factory=list)

    def enabled_fulfillments(self) -> set[str]:
        enabled = set()
        if self.enable_pickup:
            enabled.add("pickup")
        if self.enable_delivery:
            enabled.add("delivery")
        return enabled

    def enabled_payment_methods(self) -> set[str]:
        enabled = set()
        if self.enable_gcash:
            enabled.add("gcash")
        if self.enable_cod:
            enabled.add("cod")
        return enabled


@dataclass
class GCashSettings:
    account_name: str
    account_number: str
    instructions: str
    service_fee_bps: int
    minimum_amount_cents: int


@dataclass
class DeliverySettings:
    enabled: bool
    fee_cents: int
    coverage_note: str


def _catalog_entry(key: str) -> dict:
    entry = _CATALOG_BY_KEY.get(key)
    if entry is None:
        raise NotFoundError(f"Unknown setting: {key}", details={"key": key})
    return entry


def _validate_value(entry: dict, value: Any) -> Any:
    key = entry["key"]
    value_type = entry["type"]

    if value_type == "bool":
        if not isinstance(value, bool):
            raise ValidationError(f"{key} must be true or false")
        return value

    if value_type == "int":
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValidationError(f"{key} must be an integer")
        minimum = entry.get("min")
        if minimum is not None and value < minimum:
            raise ValidationError(f"{key} must be >= {minimum}")
        return value

    if value_type == "string":
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        return value.strip()

    if value_type == "string_list":
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{key} must be a list of strings")
        cleaned = [v.strip() for v in value if v.strip()]
        return list(dict.fromkeys(cleaned))

    raise ValidationError(f"{key} has unsupported type {value_type}")


def _stored_values(keys: list[str]) -> dict[str, Any]:
    rows = db.session.query(AppSetting).filter(AppSetting.key.in_(keys)).all()
    return {row.key: row.value for row in rows}


def get_setting(key: str) -> Any:
    """
    Resolve a setting: stored value when present and valid, else the catalog default.

    Read from the store on every call so admin edits apply without a restart.
    """
    return get_settings([key])[key]


def get_settings(keys: list[str]) -> dict[str, Any]:
    entries = [_catalog_entry(k) for k in keys]
    stored = _stored_values(keys)
    resolved = {}
    for entry in entries:
        key = entry["key"]
        value = copy.deepcopy(entry["default"])
        if key in stored:
            try:
                value = _validate_value(entry, stored[key])
            except ValidationError as exc:
                current_app.logger.warning("Ignoring stored value for %s: %s", key, exc.message)
        resolved[key] = value
    return resolved


def list_settings(*, public_only: bool = False) -> list[dict]:
    keys = [row["key"] for row in SETTINGS_CATALOG if row["public"] or not public_only]
    values = get_settings(keys)
    return [
        {
            "key": key,
            "value": values[key],
            "type": _CATALOG_BY_KEY[key]["type"],
            "category": _CATALOG_BY_KEY[key]["category"],
            "description": _CATALOG_BY_KEY[key]["description"],
            "default": _CATALOG_BY_KEY[key]["default"],
        }
        for key in keys
    ]


def set_setting(key: str, value: Any, *, actor: str | None = None) -> AppSetting:
    """Validate against the catalog, upsert, and audit the change."""
    entry = _catalog_entry(key)
    cleaned = _validate_value(entry, value)

    if key == "checkout.auto_paid_methods":
        unknown = [m for m in cleaned if m not in {"gcash", "cod"}]
        if unknown:
            raise ValidationError(f"Unknown payment methods: {', '.join(unknown)}")

    try:
        row = db.session.query(AppSetting).filter_by(key=key).first()
        before = row.value if row else None
        if row is None:
            row = AppSetting(key=key, value=cleaned)
            db.session.add(row)
        else:
            row.value = cleaned
        db.session.flush()

        append_audit_event(
            event_type="setting.updated",
            entity_type="setting",
            entity_id=row.id,
            actor=actor,
            note=key,
            payload={"key": key, "before": before, "after": cleaned},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return row


def seed_defaults() -> int:
    """Write catalog defaults for keys that have no stored value. Idempotent."""
    existing = {k for (k,) in db.session.query(AppSetting.key).all()}
    added = 0
    for entry in SETTINGS_CATALOG:
        if entry["key"] in existing:
            continue
        db.session.add(AppSetting(key=entry["key"], value=copy.deepcopy(entry["default"])))
        added += 1
    db.session.commit()
    return added


def get_checkout_settings() -> CheckoutSettings:
    values = get_settings([
        "checkout.enable_pickup",
        "checkout.enable_delivery",
        "checkout.enable_gcash",
        "checkout.enable_cod",
        "checkout.pickup_locations",
        "checkout.auto_paid_methods",
        "delivery.fee_cents",
    ])
    return CheckoutSettings(
        enable_pickup=values["checkout.enable_pickup"],
        enable_delivery=values["checkout.enable_delivery"],
        enable_gcash=values["checkout.enable_gcash"],
        enable_cod=values["checkout.enable_cod"],
        delivery_fee_cents=values["delivery.fee_cents"],
        pickup_locations=values["checkout.pickup_locations"],
        auto_paid_methods=values["checkout.auto_paid_methods"],
    )


def get_gcash_settings() -> GCashSettings:
    values = get_settings([
        "gcash.account_name",
        "gcash.account_number",
        "gcash.instructions",
        "gcash.service_fee_bps",
        "gcash.minimum_amount_cents",
    ])
    return GCashSettings(
        account_name=values["gcash.account_name"],
        account_number=values["gcash.account_number"],
        instructions=values["gcash.instructions"],
        service_fee_bps=values["gcash.service_fee_bps"],
        minimum_amount_cents=values["gcash.minimum_amount_cents"],
    )


def get_delivery_settings() -> DeliverySettings:
    values = get_settings([
        "checkout.enable_delivery",
        "delivery.fee_cents",
        "delivery.coverage_note",
    ])
    return DeliverySettings(
        enabled=values["checkout.enable_delivery"],
        fee_cents=values["delivery.fee_cents"],
        coverage_note=values["delivery.coverage_note"],
    )
