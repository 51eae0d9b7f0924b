# backend/riderapp/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///rider.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Token signing. No default: a missing secret is a server configuration error.
    JWT_SECRET = os.environ.get("JWT_SECRET")
    JWT_EXPIRES_HOURS = int(os.environ.get("JWT_EXPIRES_HOURS", "12"))

    # PayRex (QRPH payment intents + webhooks)
    PAYREX_SECRET_API_KEY = os.environ.get("PAYREX_SECRET_API_KEY")
    PAYREX_API_BASE = os.environ.get("PAYREX_API_BASE", "https://api.payrexhq.com")
    PAYREX_WEBHOOK_SECRET = os.environ.get("PAYREX_WEBHOOK_SECRET")
    PAYMENT_CURRENCY = os.environ.get("PAYMENT_CURRENCY", "PHP")
    PAYMENT_PROVIDER_TIMEOUT = float(os.environ.get("PAYMENT_PROVIDER_TIMEOUT", "10"))

    # Comma separated list of browser origins allowed to call the API
    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]
