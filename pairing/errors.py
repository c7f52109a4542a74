"""
Error taxonomy for the pairing flow.

Each error carries the HTTP status the routes translate it to. Errors raised
after a request id has been handed out are recorded on the pairing request
instead of propagating to a caller.
"""

from __future__ import annotations


class PairingError(Exception):
    """Base class for pairing flow errors."""

    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidRequestError(PairingError):
    """Missing or malformed input (phone, OTP)."""

    status_code = 400


class RequestNotFoundError(PairingError):
    """Neither an OTP record nor a pairing request exists for the id."""

    status_code = 404


class OtpNotFoundError(RequestNotFoundError):
    """No OTP record for the id (never issued, swept, or evicted)."""


class OtpExpiredError(PairingError):
    """OTP submitted after its validity window. The record is evicted."""

    status_code = 410


class InvalidOtpError(PairingError):
    """Submitted code does not match. Resubmission is allowed until expiry."""

    status_code = 403


class ExternalSessionError(PairingError):
    """The external protocol session failed to start or crashed."""

    status_code = 502
