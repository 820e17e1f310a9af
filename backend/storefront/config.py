# backend/storefront/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Rendered tickets; None means <instance_path>/facturas
    RECEIPTS_DIR = os.environ.get("RECEIPTS_DIR")

    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))

    # Printed on every ticket header
    STORE_NAME = os.environ.get("STORE_NAME", "Ron Wood")
    STORE_ADDRESS = os.environ.get("STORE_ADDRESS", "Felix de Olazabal 1464")

    # IANA zone for report days, week/month buckets and ticket times
    STORE_TIMEZONE = os.environ.get("STORE_TIMEZONE", "America/Argentina/Buenos_Aires")

    # Game-store session lifetime
    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "1"))

    CORS_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        ).split(",")
        if origin.strip()
    }
