"""
Pairing service configuration: all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os
from pathlib import Path


class Settings:
    """Application settings from environment variables."""

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")
    HOST: str = os.environ.get("HOST", "0.0.0.0")
    PORT: int = int(os.environ.get("PORT", "3001"))

    # Per-request session directories (meta.json lives here)
    SESSIONS_DIR: Path = Path(os.environ.get("SESSIONS_DIR", "sessions"))

    # Protocol bridge sidecar
    BRIDGE_URL: str = os.environ.get("BRIDGE_URL", "http://localhost:3002")
    BRIDGE_TIMEOUT_SECONDS: float = float(os.environ.get("BRIDGE_TIMEOUT_SECONDS", "10"))

    # SMS (Twilio). Unset credentials switch to simulated delivery.
    TWILIO_ACCOUNT_SID: str = os.environ.get("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.environ.get("TWILIO_AUTH_TOKEN", "")
    TWILIO_FROM_NUMBER: str = os.environ.get("TWILIO_FROM_NUMBER", "")

    # OTP
    OTP_EXPIRY_MINUTES: int = int(os.environ.get("OTP_EXPIRY_MINUTES", "5"))
    OTP_SWEEP_INTERVAL_SECONDS: int = int(os.environ.get("OTP_SWEEP_INTERVAL_SECONDS", "60"))

    # Pairing
    PAIR_RESPONSE_TIMEOUT_SECONDS: float = float(os.environ.get("PAIR_RESPONSE_TIMEOUT_SECONDS", "15"))
    PAIRING_RETENTION_HOURS: int = int(os.environ.get("PAIRING_RETENTION_HOURS", "24"))

    # Rate Limits (per hour)
    PAIR_RATE_LIMIT_PER_PHONE: int = int(os.environ.get("PAIR_RATE_LIMIT_PER_PHONE", "5"))
    PAIR_RATE_LIMIT_PER_IP: int = int(os.environ.get("PAIR_RATE_LIMIT_PER_IP", "20"))


# Singleton instance
settings = Settings()

if settings.OTP_EXPIRY_MINUTES <= 0:
    raise RuntimeError("OTP_EXPIRY_MINUTES must be positive")
if settings.PAIR_RESPONSE_TIMEOUT_SECONDS <= 0:
    raise RuntimeError("PAIR_RESPONSE_TIMEOUT_SECONDS must be positive")
