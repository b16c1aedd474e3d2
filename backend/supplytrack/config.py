# backend/supplytrack/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Bearer tokens are signed with JWT_SECRET (falls back to SECRET_KEY)
    JWT_SECRET = os.environ.get("JWT_SECRET") or SECRET_KEY
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRES_HOURS = int(os.environ.get("JWT_EXPIRES_HOURS", "24"))

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///supplytrack.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Only applied to pooled (non-SQLite) engines
    DB_POOL_SIZE = int(os.environ.get("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW = int(os.environ.get("DB_MAX_OVERFLOW", "20"))

    # Pinning service (QR images, checkpoint photos)
    PINNING_API_URL = os.environ.get("PINNING_API_URL", "https://api.pinata.cloud")
    PINNING_GATEWAY_URL = os.environ.get("PINNING_GATEWAY_URL", "https://gateway.pinata.cloud/ipfs")
    PINNING_JWT = os.environ.get("PINATA_JWT")
    PINNING_TIMEOUT_SECONDS = float(os.environ.get("PINNING_TIMEOUT_SECONDS", "20"))

    # Scan / verification pages live on the public site
    PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "https://www.biztrack.io")

    # Explorer used for blockchain transaction links on verification records
    LEDGER_EXPLORER_URL = os.environ.get("LEDGER_EXPLORER_URL", "https://livenet.xrpl.org/transactions")

    # Usage counter rollover; 0 disables it
    BILLING_CYCLE_DAYS = int(os.environ.get("BILLING_CYCLE_DAYS", "30"))

    EXPOSE_ERROR_DETAILS = _env_bool("EXPOSE_ERROR_DETAILS")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
