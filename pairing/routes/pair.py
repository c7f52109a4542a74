"""Pairing routes: start a device link, verify the OTP, poll progress."""

from __future__ import annotations

import re

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from pairing import config
from pairing.deps import get_orchestrator, get_rate_limiter
from pairing.errors import PairingError
from pairing.middleware.rate_limit import RateLimiter
from pairing.models.otp import VerifyOtpRequest, VerifyOtpResponse
from pairing.models.pairing import PairingStartResponse, PairingStatusResponse, StartPairingRequest
from pairing.services.orchestrator import PairingOrchestrator

router = APIRouter(prefix="/pair", tags=["pair"])

_E164_RE = re.compile(r"^\+[1-9]\d{6,14}$")


def _http_error(exc: PairingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


@router.post("", status_code=200, response_model_exclude_none=True)
async def start_pairing(
    request: Request,
    response: Response,
    req: StartPairingRequest | None = None,
    orchestrator: PairingOrchestrator = Depends(get_orchestrator),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> PairingStartResponse:
    """
    Start linking a device for a phone number.

    Sends an OTP by SMS and starts the protocol session. Replies with the
    first of: QR challenge, pairing code, or `pending` after the response
    timeout (HTTP 202). Anything after that is only visible via GET /pair/{id}.

    Rate limits:
    - PAIR_RATE_LIMIT_PER_PHONE per phone per hour (default 5)
    - PAIR_RATE_LIMIT_PER_IP per IP per hour (default 20)
    """
    phone = (req.phone if req else None) or ""
    phone = phone.strip()
    if not phone:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="phone is required (E.164 format)",
        )
    if not _E164_RE.match(phone):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="phone must be in E.164 format, e.g. +15551234567",
        )

    client_ip = request.client.host if request.client else "unknown"
    if not rate_limiter.check_rate_limits(
        {
            f"phone:{phone}": config.settings.PAIR_RATE_LIMIT_PER_PHONE,
            f"ip:{client_ip}": config.settings.PAIR_RATE_LIMIT_PER_IP,
        }
    ):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many pairing requests. Try again later.",
            headers={"Retry-After": "3600"},
        )

    request_id = await orchestrator.start_pairing(phone)
    reply = await orchestrator.await_first_response(request_id)
    if reply.status == "pending":
        response.status_code = status.HTTP_202_ACCEPTED
    return reply


@router.post("/{request_id}/verify-otp", response_model_exclude_none=True)
async def verify_otp(
    request_id: str,
    req: VerifyOtpRequest | None = None,
    orchestrator: PairingOrchestrator = Depends(get_orchestrator),
) -> VerifyOtpResponse:
    """
    Verify the SMS code for a pairing request.

    If the protocol session is already ready, the response carries the
    sessionId and credential export; otherwise linking completes when the
    session becomes ready.
    """
    try:
        return orchestrator.verify_otp(request_id, req.otp if req else None)
    except PairingError as exc:
        raise _http_error(exc) from exc


@router.get("/{request_id}")
async def get_pairing(
    request_id: str,
    orchestrator: PairingOrchestrator = Depends(get_orchestrator),
) -> PairingStatusResponse:
    """Current status, challenge artifacts, OTP and link state for a request."""
    try:
        return orchestrator.snapshot(request_id)
    except PairingError as exc:
        raise _http_error(exc) from exc
