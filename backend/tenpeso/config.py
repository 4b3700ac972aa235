# backend/tenpeso/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tenpeso.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tenpeso.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Civil time zone used to bucket orders into business days.
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Asia/Manila")

    # Dashboard revenue excludes delivery fees unless switched on.
    REVENUE_INCLUDES_DELIVERY_FEE = _env_flag("REVENUE_INCLUDES_DELIVERY_FEE", False)

    # Products that were never received through a batch sell at their default cost.
    ALLOW_UNRECEIVED_FALLBACK = _env_flag("ALLOW_UNRECEIVED_FALLBACK", True)

    # Bearer token for /api/admin routes; admin routes are open when unset.
    ADMIN_API_TOKEN = os.environ.get("ADMIN_API_TOKEN") or None

    LOW_STOCK_LIMIT = int(os.environ.get("LOW_STOCK_LIMIT", "8"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
