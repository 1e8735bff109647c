# backend/stockledger/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Stock level thresholds (inclusive). A product-level low_stock_threshold
    # overrides LOW_STOCK_THRESHOLD for that product.
    LOW_STOCK_THRESHOLD = _int_env("LOW_STOCK_THRESHOLD", 5)
    CRITICAL_STOCK_THRESHOLD = _int_env("CRITICAL_STOCK_THRESHOLD", 2)

    # Minimum gap between two LOW_STOCK alerts for the same product
    LOW_STOCK_ALERT_COOLDOWN_HOURS = _int_env("LOW_STOCK_ALERT_COOLDOWN_HOURS", 24)

    # Sales window used to compute velocity for reorder suggestions
    REORDER_LOOKBACK_DAYS = _int_env("REORDER_LOOKBACK_DAYS", 30)

    DB_RETRY_ATTEMPTS = _int_env("DB_RETRY_ATTEMPTS", 3)
