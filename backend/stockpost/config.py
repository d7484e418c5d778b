# backend/stockpost/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockpost.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockpost.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # "fail_open": log and continue the approval, "fail_closed": abort it
    PRICE_HISTORY_FAILURE_POLICY = os.environ.get("PRICE_HISTORY_FAILURE_POLICY", "fail_open")
    PRICE_HISTORY_EPSILON = os.environ.get("PRICE_HISTORY_EPSILON", "0.0001")

    # Stock-out below zero raises InsufficientStock unless enabled. Never clamps.
    ALLOW_NEGATIVE_STOCK = os.environ.get("ALLOW_NEGATIVE_STOCK", "false").lower() in ("1", "true", "yes")

    # PostgreSQL only (SET LOCAL lock_timeout); SQLite relies on its busy timeout
    LOCK_TIMEOUT_MS = int(os.environ.get("LOCK_TIMEOUT_MS", "5000"))
    APPROVAL_RETRY_ATTEMPTS = int(os.environ.get("APPROVAL_RETRY_ATTEMPTS", "3"))
    APPROVAL_RETRY_BACKOFF = float(os.environ.get("APPROVAL_RETRY_BACKOFF", "0.1"))

    REFERENCE_PREFIX = os.environ.get("REFERENCE_PREFIX", "SA")
