# backend/chiccheckout/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/chiccheckout.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///chiccheckout.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sales tax applied to (subtotal - discount), in basis points (800 = 8%)
    TAX_RATE_BPS = int(os.environ.get("TAX_RATE_BPS", "800"))

    # "clamp": stock-out beyond on-hand sets stock to 0
    # "reject": stock-out beyond on-hand fails with InsufficientStock
    STOCK_OUT_POLICY = os.environ.get("STOCK_OUT_POLICY", "clamp")

    # Fixed-amount discounts never exceed the subtotal when enabled
    CLAMP_FIXED_DISCOUNTS = _env_bool("CLAMP_FIXED_DISCOUNTS", True)

    # Receipt/feedback webhook; unset disables notifications
    NOTIFICATION_WEBHOOK_URL = os.environ.get("NOTIFICATION_WEBHOOK_URL")
    NOTIFICATION_TIMEOUT_SECONDS = float(os.environ.get("NOTIFICATION_TIMEOUT_SECONDS", "5"))
    NOTIFICATION_ASYNC = _env_bool("NOTIFICATION_ASYNC", True)

    LOW_STOCK_REPORT_LIMIT = int(os.environ.get("LOW_STOCK_REPORT_LIMIT", "100"))
