"""
Respond-once contract for the HTTP request that started a pairing.

Each request id gets a single-assignment future. Whatever resolves it first
(QR challenge, pairing code, or the timeout fallback) becomes the synchronous
reply; later offers are rejected and only show up through polling.
"""

from __future__ import annotations

import asyncio
import logging

from pairing.models.pairing import PairingStartResponse

logger = logging.getLogger(__name__)

OTP_SENT_MESSAGE = "OTP sent to phone."
PENDING_MESSAGE = "OTP sent. Waiting for QR/pairing code (poll /pair/{request_id})."


def qr_reply(request_id: str, qr: str) -> PairingStartResponse:
    return PairingStartResponse(request_id=request_id, status="qr", qr=qr, message=OTP_SENT_MESSAGE)


def pairing_code_reply(request_id: str, code: str) -> PairingStartResponse:
    return PairingStartResponse(
        request_id=request_id,
        status="pairing_code",
        pairing_code=code,
        message=OTP_SENT_MESSAGE,
    )


def pending_reply(request_id: str) -> PairingStartResponse:
    return PairingStartResponse(
        request_id=request_id,
        status="pending",
        message=PENDING_MESSAGE.format(request_id=request_id),
    )


class ResponseCoordinator:
    """One-shot reply slots keyed by request id."""

    def __init__(self) -> None:
        self._slots: dict[str, asyncio.Future[PairingStartResponse]] = {}

    def open(self, request_id: str) -> None:
        """Create the reply slot. Must run before any event for request_id is offered."""
        if request_id in self._slots:
            raise RuntimeError(f"Reply slot for {request_id} already open")
        self._slots[request_id] = asyncio.get_running_loop().create_future()

    def offer(self, request_id: str, reply: PairingStartResponse) -> bool:
        """
        Try to resolve the reply for request_id.

        Returns:
            True if this reply won, False if one was already chosen or the
            slot is gone
        """
        slot = self._slots.get(request_id)
        if slot is None or slot.done():
            return False
        slot.set_result(reply)
        return True

    def is_resolved(self, request_id: str) -> bool:
        slot = self._slots.get(request_id)
        return slot is None or slot.done()

    async def wait(self, request_id: str, timeout: float) -> PairingStartResponse:
        """
        Wait for the first reply, falling back to `pending` after timeout.

        The slot is released afterwards, so later offers are no-ops.
        """
        slot = self._slots.get(request_id)
        if slot is None:
            raise KeyError(request_id)
        try:
            return await asyncio.wait_for(asyncio.shield(slot), timeout=timeout)
        except TimeoutError:
            if self.offer(request_id, pending_reply(request_id)):
                logger.info("No challenge within %ss for %s, replying pending", timeout, request_id)
            return slot.result()
        finally:
            self._slots.pop(request_id, None)

    def discard(self, request_id: str) -> None:
        slot = self._slots.pop(request_id, None)
        if slot is not None and not slot.done():
            slot.cancel()
