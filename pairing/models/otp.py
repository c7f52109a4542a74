"""OTP models for the pairing verification step."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class OtpRecord(BaseModel):
    """One-time code issued for a pairing request. One per request id."""

    request_id: str
    code: str
    phone: str
    expires_at: datetime
    verified: bool = False
    verified_at: datetime | None = None
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class VerifyOtpRequest(BaseModel):
    """Request body for submitting an OTP. Presence is checked by the store."""

    otp: str | None = None


class VerifyOtpResponse(BaseModel):
    """Successful OTP verification."""

    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(alias="requestId")
    verified: bool = True
    session_id: str | None = Field(default=None, alias="sessionId")
    export: str | None = None
    message: str | None = None
