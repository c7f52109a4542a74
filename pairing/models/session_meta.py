"""Durable per-request session metadata, written once on first readiness."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SessionMeta(BaseModel):
    """Contents of <SESSIONS_DIR>/<requestId>/meta.json."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    request_id: str = Field(alias="requestId")
    phone: str
    created_at: datetime
    ready_at: datetime


class SessionListResponse(BaseModel):
    """Response body for GET /sessions."""

    sessions: list[SessionMeta]
