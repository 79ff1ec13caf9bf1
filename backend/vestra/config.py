# backend/vestra/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/vestra.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///vestra.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Stores are created with this timezone; "today" for cash closure is
    # evaluated in the store's own timezone.
    DEFAULT_STORE_TIMEZONE = os.environ.get("DEFAULT_STORE_TIMEZONE", "America/Sao_Paulo")

    # Fiscal (NFC-e) provider. Emission is skipped when no token is set.
    FISCAL_API_URL = os.environ.get("FISCAL_API_URL", "https://homologacao.focusnfe.com.br")
    FISCAL_API_TOKEN = os.environ.get("FISCAL_API_TOKEN")
    FISCAL_TIMEOUT_SECONDS = float(os.environ.get("FISCAL_TIMEOUT_SECONDS", "15"))
