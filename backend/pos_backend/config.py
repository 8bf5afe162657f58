# backend/pos_backend/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Checkout pricing (string so Decimal parsing stays exact)
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "0.11")

    # Retries of the checkout unit when a generated transaction code collides
    TRANSACTION_CODE_ATTEMPTS = int(os.environ.get("TRANSACTION_CODE_ATTEMPTS", "3"))

    # Deferred (QRIS) settlement
    QRIS_EXPIRY_MINUTES = int(os.environ.get("QRIS_EXPIRY_MINUTES", "15"))
    QR_IMAGE_BASE_URL = os.environ.get(
        "QR_IMAGE_BASE_URL",
        "https://api.qrserver.com/v1/create-qr-code/?size=300x300&data=",
    )
    # Shared secret expected in X-Webhook-Secret; empty disables the check (dev only)
    QRIS_WEBHOOK_SECRET = os.environ.get("QRIS_WEBHOOK_SECRET", "")

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "12"))

    # Stock at or below this counts as low on the dashboard
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))
