"""
Join of the two pairing completions: OTP verification and protocol readiness.

Either side can finish first. Both mutation sites call reconcile() after
changing their own state, and reconcile() links only when both halves hold
and the request is not linked yet, so linking happens exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pairing.models.otp import OtpRecord
from pairing.models.pairing import PairingRequest


@dataclass(frozen=True)
class LinkNotification:
    """Best-effort SMS telling the user the session is linked."""

    phone: str
    session_id: str

    @property
    def text(self) -> str:
        return f"Pairing complete. sessionId: {self.session_id}"


def otp_verified(request: PairingRequest, otp: OtpRecord | None) -> bool:
    """True if the OTP half of the join holds, even after the OTP record was swept."""
    if otp is not None and otp.verified:
        return True
    return request.otp_verified_at is not None


def reconcile(
    request: PairingRequest,
    otp: OtpRecord | None,
    now: datetime,
) -> tuple[PairingRequest, LinkNotification | None]:
    """
    Decide whether a pairing request becomes linked.

    Pure: the input request is not modified.

    Args:
        request: Current pairing request state
        otp: Matching OTP record, if still present
        now: Timestamp to use as linked_at

    Returns:
        (new request state, notification to send or None)
    """
    if request.linked:
        return request, None
    # session_id is only assigned on readiness and survives a later disconnect
    if request.session_id is None:
        return request, None
    if not otp_verified(request, otp):
        return request, None

    linked = request.model_copy(update={"linked": True, "linked_at": now})
    return linked, LinkNotification(phone=request.phone, session_id=request.session_id)
