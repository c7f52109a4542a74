"""Session listing route: reads the durable metadata written on readiness."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from pairing.deps import get_orchestrator
from pairing.models.session_meta import SessionListResponse
from pairing.services.orchestrator import PairingOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("")
async def list_sessions(
    orchestrator: PairingOrchestrator = Depends(get_orchestrator),
) -> SessionListResponse:
    """List every session that ever reached ready."""
    try:
        sessions = orchestrator.list_sessions()
    except OSError as exc:
        logger.exception("Failed to read sessions directory")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read sessions.",
        ) from exc
    return SessionListResponse(sessions=sessions)
