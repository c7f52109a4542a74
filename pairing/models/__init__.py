"""
Pydantic models for the pairing service.

All data shapes defined here. No imports from repos, services, or routes.
"""

from pairing.models.otp import OtpRecord, VerifyOtpRequest, VerifyOtpResponse
from pairing.models.pairing import (
    PairingRequest,
    PairingStartResponse,
    PairingStatus,
    PairingStatusResponse,
    StartPairingRequest,
)
from pairing.models.session_meta import SessionListResponse, SessionMeta

__all__ = [
    # OTP models
    "OtpRecord",
    "VerifyOtpRequest",
    "VerifyOtpResponse",
    # Pairing models
    "PairingRequest",
    "PairingStatus",
    "StartPairingRequest",
    "PairingStartResponse",
    "PairingStatusResponse",
    # Session metadata
    "SessionMeta",
    "SessionListResponse",
]
