"""
FastAPI dependencies: per-process service objects live on app.state.

The lifespan builds them once at startup; tests put their own instances on
app.state instead.
"""

from __future__ import annotations

from fastapi import Request

from pairing import config
from pairing.middleware.rate_limit import RateLimiter
from pairing.repos.otp_repo import OtpStore
from pairing.repos.pairing_repo import SessionRegistry
from pairing.repos.session_meta_repo import SessionMetaRepo
from pairing.services.bridge_client import BridgeProtocolClient
from pairing.services.orchestrator import PairingOrchestrator
from pairing.services.protocol import ProtocolClient
from pairing.services.sms_service import SmsService


def build_orchestrator(
    protocol: ProtocolClient | None = None,
    sms: SmsService | None = None,
) -> PairingOrchestrator:
    """Construct the orchestrator and its stores from settings."""
    sms = sms or SmsService()
    return PairingOrchestrator(
        protocol=protocol or BridgeProtocolClient(),
        sms=sms,
        otp_store=OtpStore(sms),
        registry=SessionRegistry(),
        meta_repo=SessionMetaRepo(config.settings.SESSIONS_DIR),
    )


def get_orchestrator(request: Request) -> PairingOrchestrator:
    return request.app.state.orchestrator


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter
