from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum price: PHP 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999
MAX_LINE_QTY = 10_000


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    """
    for field in ("price_cents", "cost_cents"):
        if field in patch and patch[field] is not None:
            value = patch[field]
            if value < 0:
                raise ValidationError(f"{field} must be >= 0")
            if value > MAX_PRICE_CENTS:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_expense(patch: dict, categories) -> None:
    if "amount_cents" in patch:
        amount = patch["amount_cents"]
        if amount is None or amount <= 0:
            raise ValidationError("amount_cents must be > 0")
        if amount > MAX_PRICE_CENTS:
            raise ValidationError(f"amount_cents cannot exceed {MAX_PRICE_CENTS}")
    if patch.get("category") and patch["category"] not in categories:
        raise ValidationError(f"category must be one of {list(categories)}")


def parse_receive_items(items: Any) -> list[dict]:
    """Normalize batch receipt lines; errors name the offending line."""
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"item {index} must be an object", details={"item_index": index})
        for field in ("product_id", "qty", "unit_cost_cents"):
            if item.get(field) is None:
                raise ValidationError(f"item {index}: {field} is required", details={"item_index": index})
        try:
            product_id = coerce_int(item["product_id"], "product_id")
            qty = coerce_int(item["qty"], "qty")
            unit_cost_cents = coerce_int(item["unit_cost_cents"], "unit_cost_cents")
        except ValidationError as exc:
            raise ValidationError(f"item {index}: {exc.message}", details={"item_index": index})
        if qty <= 0:
            raise ValidationError(f"item {index}: qty must be > 0", details={"item_index": index})
        if unit_cost_cents < 0:
            raise ValidationError(f"item {index}: unit_cost_cents must be >= 0", details={"item_index": index})
        if unit_cost_cents > MAX_PRICE_CENTS:
            raise ValidationError(
                f"item {index}: unit_cost_cents cannot exceed {MAX_PRICE_CENTS}",
                details={"item_index": index},
            )
        parsed.append({"product_id": product_id, "qty": qty, "unit_cost_cents": unit_cost_cents})
    return parsed


def parse_order_items(items: Any) -> list[dict]:
    """
    Normalize cart lines into one line per product, in first-seen order.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    merged: dict[int, int] = {}
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"item {index} must be an object", details={"item_index": index})
        if item.get("product_id") is None or item.get("qty") is None:
            raise ValidationError(f"item {index}: product_id and qty are required", details={"item_index": index})
        try:
            product_id = coerce_int(item["product_id"], "product_id")
            qty = coerce_int(item["qty"], "qty")
        except ValidationError as exc:
            raise ValidationError(f"item {index}: {exc.message}", details={"item_index": index})
        if qty <= 0:
            raise ValidationError(f"item {index}: qty must be > 0", details={"item_index": index})
        merged[product_id] = merged.get(product_id, 0) + qty

    for product_id, qty in merged.items():
        if qty > MAX_LINE_QTY:
            raise ValidationError(
                f"qty for product {product_id} cannot exceed {MAX_LINE_QTY}",
                details={"product_id": product_id},
            )

    return [{"product_id": pid, "qty": qty} for pid, qty in merged.items()]
