# backend/posledger/config.py
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

    # SQLite DB stored in backend/instance/posledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///posledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Document series: prefix + year + zero-padded counter (e.g. HD20250007)
    SALES_CODE_PREFIX = os.environ.get("SALES_CODE_PREFIX", "HD")
    PURCHASE_CODE_PREFIX = os.environ.get("PURCHASE_CODE_PREFIX", "PN")
    DOCUMENT_CODE_PAD = int(os.environ.get("DOCUMENT_CODE_PAD", "4"))

    # Reject sales that would drive derived stock below zero
    ALLOW_NEGATIVE_STOCK = _env_flag("ALLOW_NEGATIVE_STOCK", False)
