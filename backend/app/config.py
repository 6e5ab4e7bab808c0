# backend/app/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Document refs look like "SAJM-00007"
    REF_PAD = _env_int("REF_PAD", 5)

    # List endpoints
    DEFAULT_PAGE_SIZE = _env_int("DEFAULT_PAGE_SIZE", 10)
    MAX_PAGE_SIZE = _env_int("MAX_PAGE_SIZE", 100)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
