"""In-memory registry of pairing requests."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from pairing.models.pairing import CHALLENGE_STATUSES, PairingRequest
from pairing.services.protocol import (
    Challenge,
    ConnectionClosed,
    ConnectionOpen,
    CredentialsUpdated,
    ProtocolEvent,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionRegistry:
    """
    Table of pairing attempts keyed by request id.

    Status only moves forward: initializing -> qr/pairing_code -> ready ->
    disconnected/logged_out. A request that reaches a terminal status
    (disconnected, logged_out, failed) ignores later events.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._requests: dict[str, PairingRequest] = {}

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, request_id: str) -> bool:
        return request_id in self._requests

    def create(self, request_id: str, phone: str) -> PairingRequest:
        request = PairingRequest(request_id=request_id, phone=phone, created_at=self._clock())
        self._requests[request_id] = request
        return request

    def get(self, request_id: str) -> PairingRequest | None:
        return self._requests.get(request_id)

    def save(self, request: PairingRequest) -> None:
        """Replace the stored record (used with the output of reconcile)."""
        self._requests[request.request_id] = request

    def apply_event(self, request_id: str, event: ProtocolEvent) -> bool:
        """
        Apply one protocol event to a stored request.

        Args:
            request_id: Pairing request id
            event: Event emitted by the protocol session

        Returns:
            True if this event moved the request into `ready`
        """
        request = self._requests.get(request_id)
        if request is None:
            logger.debug("Dropping %s for unknown request %s", type(event).__name__, request_id)
            return False

        if isinstance(event, Challenge):
            if request.status not in CHALLENGE_STATUSES:
                logger.debug("Ignoring %s challenge for %s in status %s", event.kind, request_id, request.status)
                return False
            if event.kind == "qr":
                request.qr = event.value
            else:
                request.pairing_code = event.value
            request.status = event.kind
            return False

        if isinstance(event, ConnectionOpen):
            if request.status not in CHALLENGE_STATUSES:
                logger.debug("Ignoring open for %s in status %s", request_id, request.status)
                return False
            request.status = "ready"
            request.ready_at = self._clock()
            if request.session_id is None:
                request.session_id = str(uuid.uuid4())
            logger.info("Protocol session ready for %s", request_id)
            return True

        if isinstance(event, ConnectionClosed):
            if request.is_terminal:
                return False
            if event.logged_out:
                logger.info("Logged out for %s", request_id)
                request.status = "logged_out"
            else:
                logger.info("Connection closed for %s reason %s", request_id, event.reason_code)
                request.status = "disconnected"
            return False

        if isinstance(event, CredentialsUpdated):
            logger.debug("Credentials updated for %s", request_id)
            return False

        logger.warning("Unhandled protocol event %r for %s", event, request_id)
        return False

    def fail(self, request_id: str, error: str) -> None:
        """Mark a request failed unless it already finished one way or another."""
        request = self._requests.get(request_id)
        if request is None:
            return
        request.error = error
        if request.status in CHALLENGE_STATUSES:
            request.status = "failed"

    def record_error(self, request_id: str, error: str) -> None:
        """Keep an error detail without changing the status."""
        request = self._requests.get(request_id)
        if request is not None:
            request.error = error

    def note_otp_verified(self, request_id: str, verified_at: datetime) -> None:
        request = self._requests.get(request_id)
        if request is not None and request.otp_verified_at is None:
            request.otp_verified_at = verified_at

    def evict_older_than(self, cutoff: datetime) -> list[str]:
        """
        Drop requests created before cutoff.

        Returns:
            Evicted request ids
        """
        evicted = [rid for rid, req in self._requests.items() if req.created_at < cutoff]
        for rid in evicted:
            del self._requests[rid]
        return evicted
