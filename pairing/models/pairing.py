"""Pairing request models: registry records and the /pair response shapes."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PairingStatus = Literal[
    "initializing",
    "qr",
    "pairing_code",
    "ready",
    "logged_out",
    "disconnected",
    "failed",
]

TERMINAL_STATUSES: frozenset[str] = frozenset({"logged_out", "disconnected", "failed"})
CHALLENGE_STATUSES: frozenset[str] = frozenset({"initializing", "qr", "pairing_code"})


class PairingRequest(BaseModel):
    """In-flight device linking attempt: one per request id."""

    request_id: str
    phone: str
    status: PairingStatus = "initializing"
    qr: str | None = None
    pairing_code: str | None = None
    session_id: str | None = None
    linked: bool = False
    exported_credentials: str | None = None
    error: str | None = None
    otp_verified_at: datetime | None = None
    created_at: datetime
    ready_at: datetime | None = None
    linked_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class StartPairingRequest(BaseModel):
    """Request body for POST /pair. Presence is checked in the route."""

    phone: str | None = None


class PairingStartResponse(BaseModel):
    """The single synchronous reply to POST /pair."""

    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(alias="requestId")
    status: str
    qr: str | None = None
    pairing_code: str | None = None
    message: str


class PairingStatusResponse(BaseModel):
    """Full pollable snapshot returned by GET /pair/{requestId}."""

    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(alias="requestId")
    status: str
    phone: str | None
    qr: str | None
    pairing_code: str | None
    otp_verified: bool
    session_id: str | None = Field(alias="sessionId")
    export: str | None
    linked: bool
    error: str | None
    created_at: datetime | None
