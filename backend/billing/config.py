# backend/billing/config.py
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

    # SQLite DB stored in backend/instance/billing.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///billing.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # How edits to an already-posted document reach the ledger:
    #   "delta" - append one revision entry for the change in grand total
    #   "none"  - leave the ledger and customer balance untouched
    LEDGER_EDIT_POLICY = os.environ.get("LEDGER_EDIT_POLICY", "delta")

    # Professional IDs fall back to a random, non-authoritative suffix when
    # the shared counter cannot be incremented.
    IDENTIFIER_FALLBACK_ENABLED = _env_flag("IDENTIFIER_FALLBACK_ENABLED", True)

    # Attempts for counter / posting transactions before ConcurrencyError
    COUNTER_RETRY_ATTEMPTS = int(os.environ.get("COUNTER_RETRY_ATTEMPTS", "5"))

    # Browser origins allowed to call the JSON API (comma-separated in env)
    CORS_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    )
