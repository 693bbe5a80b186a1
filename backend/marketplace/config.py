# backend/marketplace/config.py
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

    # SQLite DB stored in backend/instance/marketplace.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///marketplace.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Payment/delivery confirmations fan out into vendor sales records
    AUTO_RECORD_SALES = _env_flag("AUTO_RECORD_SALES", True)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
