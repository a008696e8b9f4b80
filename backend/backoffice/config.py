# backend/backoffice/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance folder unless DATABASE_URL says otherwise
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///backoffice.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Purchase orders are numbered <prefix>-<year>-<4 digits>
    PURCHASE_ORDER_PREFIX = os.environ.get("PURCHASE_ORDER_PREFIX", "OC")

    # Hard cap on movement listings
    MOVEMENT_LIST_LIMIT = _env_int("MOVEMENT_LIST_LIMIT", 500)

    # Retry policy for lock/serialization failures
    RETRY_ATTEMPTS = _env_int("RETRY_ATTEMPTS", 3)
    RETRY_BACKOFF_SECONDS = _env_float("RETRY_BACKOFF_SECONDS", 0.1)

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    }
