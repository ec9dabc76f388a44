# backend/lendtrack/config.py
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

    # SQLite DB stored in backend/instance/lendtrack.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///lendtrack.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Borrow policy
    DEFAULT_LOAN_DAYS = int(os.environ.get("DEFAULT_LOAN_DAYS", "7"))
    MAX_LOAN_DAYS = int(os.environ.get("MAX_LOAN_DAYS", "14"))  # 0 disables the ceiling
    RESTOCK_ON_REJECT = _env_bool("RESTOCK_ON_REJECT", True)
    ALLOW_PENDING_RETURN = _env_bool("ALLOW_PENDING_RETURN", True)

    EXPOSE_ERROR_DETAILS = _env_bool("EXPOSE_ERROR_DETAILS", False)

    # Notifications: "whatsapp" posts to the gateway, "log" only logs
    NOTIFIER = os.environ.get("NOTIFIER", "log")
    WHATSAPP_API_URL = os.environ.get("WHATSAPP_API_URL", "")
    WHATSAPP_API_TOKEN = os.environ.get("WHATSAPP_API_TOKEN", "")
    WHATSAPP_TIMEOUT_SECONDS = float(os.environ.get("WHATSAPP_TIMEOUT_SECONDS", "5"))

    # Forgot-password codes
    RESET_TOKEN_EXPIRES_MINUTES = int(os.environ.get("TOKEN_EXPIRES_MINUTES", "5"))

    APP_NAME = os.environ.get("APPNAME", "Lendtrack")
    SUPPORT_CONTACT = os.environ.get("SUPPORTMAIL", "support@example.com")
