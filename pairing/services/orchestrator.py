"""
Pairing orchestrator: wires the OTP store, session registry, protocol client
and response coordinator into the device-linking flow.

Flow for POST /pair:
  1. Allocate a request id, issue the OTP (SMS in the background), create the
     registry record, open the reply slot
  2. Pump the protocol session's events into the registry
  3. Ask for a numeric pairing code if the client can produce one
  4. Whichever of {QR, pairing code, timeout} comes first is the HTTP reply

Everything after step 1 is best-effort: failures land on the pairing request
and are visible only by polling.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pairing import config
from pairing.errors import RequestNotFoundError
from pairing.models.otp import VerifyOtpResponse
from pairing.models.pairing import PairingStartResponse, PairingStatusResponse
from pairing.models.session_meta import SessionMeta
from pairing.repos.otp_repo import OtpStore
from pairing.repos.pairing_repo import SessionRegistry
from pairing.repos.session_meta_repo import SessionMetaRepo
from pairing.services.credentials import encode_credentials
from pairing.services.linking import LinkNotification, otp_verified, reconcile
from pairing.services.protocol import Challenge, ConnectionOpen, ProtocolClient, ProtocolEvent
from pairing.services.qr import format_pairing_code, render_qr_data_url
from pairing.services.response_coordinator import (
    ResponseCoordinator,
    pairing_code_reply,
    qr_reply,
)
from pairing.services.sms_service import SmsService

logger = logging.getLogger(__name__)

WAITING_MESSAGE = "OTP verified. Waiting for WhatsApp connection to complete."

_NON_DIGITS = re.compile(r"[^0-9]")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PairingOrchestrator:
    """Owns the live pairing state for one process."""

    def __init__(
        self,
        protocol: ProtocolClient,
        sms: SmsService,
        otp_store: OtpStore,
        registry: SessionRegistry,
        meta_repo: SessionMetaRepo,
        coordinator: ResponseCoordinator | None = None,
        response_timeout: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.protocol = protocol
        self.sms = sms
        self.otp_store = otp_store
        self.registry = registry
        self.meta_repo = meta_repo
        self.coordinator = coordinator or ResponseCoordinator()
        self.response_timeout = response_timeout or config.settings.PAIR_RESPONSE_TIMEOUT_SECONDS
        self._clock = clock
        self._pumps: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()

    # ── starting a pairing ───────────────────────────────────────────────────

    async def start_pairing(self, phone: str) -> str:
        """
        Kick off OTP delivery and the protocol session for a phone number.

        Returns immediately with the new request id; progress is reported
        through await_first_response() and snapshot().
        """
        request_id = str(uuid.uuid4())
        self.otp_store.issue(request_id, phone)
        self.registry.create(request_id, phone)
        self.coordinator.open(request_id)

        self._pumps[request_id] = asyncio.create_task(
            self._pump_events(request_id, phone),
            name=f"pairing-events-{request_id}",
        )
        if self.protocol.supports_pairing_code:
            self._spawn(self._request_pairing_code(request_id, phone))

        logger.info("Pairing started for %s (%s)", phone, request_id)
        return request_id

    async def await_first_response(self, request_id: str) -> PairingStartResponse:
        return await self.coordinator.wait(request_id, self.response_timeout)

    async def _pump_events(self, request_id: str, phone: str) -> None:
        try:
            async for event in self.protocol.subscribe(request_id, phone):
                await self.handle_event(request_id, event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Protocol session failed for %s", request_id)
            self.registry.fail(request_id, f"External session error: {exc}")
        finally:
            self._pumps.pop(request_id, None)

    async def _request_pairing_code(self, request_id: str, phone: str) -> None:
        try:
            raw = await self.protocol.request_pairing_code(request_id, _NON_DIGITS.sub("", phone))
        except Exception as exc:
            logger.warning("requestPairingCode failed for %s: %s", request_id, exc)
            self.registry.record_error(request_id, f"Pairing code request failed: {exc}")
            return
        if raw:
            await self.handle_event(request_id, Challenge(kind="pairing_code", value=raw))

    async def handle_event(self, request_id: str, event: ProtocolEvent) -> None:
        """Apply one protocol event and run whatever it unlocks."""
        if isinstance(event, Challenge):
            event = self._render_challenge(request_id, event)
            if event is None:
                return

        became_ready = self.registry.apply_event(request_id, event)

        if isinstance(event, Challenge):
            request = self.registry.get(request_id)
            if request is not None and request.status == event.kind:
                reply = (
                    qr_reply(request_id, event.value)
                    if event.kind == "qr"
                    else pairing_code_reply(request_id, event.value)
                )
                self.coordinator.offer(request_id, reply)

        if isinstance(event, ConnectionOpen) and became_ready:
            await self._on_ready(request_id)

    def _render_challenge(self, request_id: str, event: Challenge) -> Challenge | None:
        if event.kind == "pairing_code":
            return Challenge(kind="pairing_code", value=format_pairing_code(event.value))
        try:
            return Challenge(kind="qr", value=render_qr_data_url(event.value))
        except Exception:
            logger.exception("QR rendering failed for %s", request_id)
            return None

    async def _on_ready(self, request_id: str) -> None:
        request = self.registry.get(request_id)
        if request is None:
            return

        try:
            self.meta_repo.write_once(request)
        except OSError:
            logger.exception("Failed to write session metadata for %s", request_id)

        self._link_if_complete(request_id)

        try:
            blobs = await self.protocol.export_credentials(request_id)
        except Exception:
            logger.exception("Credential export failed for %s", request_id)
            return

        # Re-read: the join may have replaced the record while we awaited
        current = self.registry.get(request_id)
        if current is None or current.exported_credentials is not None:
            return
        try:
            current.exported_credentials = encode_credentials(blobs)
        except (TypeError, ValueError):
            logger.exception("Credential export for %s could not be encoded", request_id)

    # ── OTP verification ─────────────────────────────────────────────────────

    def verify_otp(self, request_id: str, code: str | None) -> VerifyOtpResponse:
        """
        Verify the OTP for a request and link it if the session is already ready.

        Raises:
            OtpNotFoundError, OtpExpiredError, InvalidRequestError, InvalidOtpError
        """
        record = self.otp_store.verify(request_id, code)
        self.registry.note_otp_verified(request_id, record.verified_at)
        self._link_if_complete(request_id)

        request = self.registry.get(request_id)
        if request is not None and request.session_id is not None:
            return VerifyOtpResponse(
                request_id=request_id,
                session_id=request.session_id,
                export=request.exported_credentials,
            )
        return VerifyOtpResponse(request_id=request_id, message=WAITING_MESSAGE)

    # ── the join ─────────────────────────────────────────────────────────────

    def _link_if_complete(self, request_id: str) -> None:
        # No await between reading and saving, so the join cannot race itself
        request = self.registry.get(request_id)
        if request is None:
            return
        updated, notification = reconcile(request, self.otp_store.get(request_id), self._clock())
        if notification is None:
            return
        self.registry.save(updated)
        logger.info("Pairing linked for %s (session %s)", request_id, updated.session_id)
        self._spawn(self._notify(notification))

    async def _notify(self, notification: LinkNotification) -> None:
        ok = await self.sms.send_message(notification.phone, notification.text)
        if not ok:
            logger.warning("Failed to SMS sessionId to %s", notification.phone)

    # ── reads ────────────────────────────────────────────────────────────────

    def snapshot(self, request_id: str) -> PairingStatusResponse:
        """
        Current pollable state of a request.

        Raises:
            RequestNotFoundError: Neither an OTP record nor a pairing request exists
        """
        request = self.registry.get(request_id)
        otp = self.otp_store.get(request_id)
        if request is None and otp is None:
            raise RequestNotFoundError("not found")

        if request is None:
            return PairingStatusResponse(
                request_id=request_id,
                status="unknown",
                phone=otp.phone,
                qr=None,
                pairing_code=None,
                otp_verified=otp.verified,
                session_id=None,
                export=None,
                linked=False,
                error=None,
                created_at=otp.created_at,
            )

        return PairingStatusResponse(
            request_id=request_id,
            status=request.status,
            phone=request.phone,
            qr=request.qr,
            pairing_code=request.pairing_code,
            otp_verified=otp_verified(request, otp),
            session_id=request.session_id,
            export=request.exported_credentials,
            linked=request.linked,
            error=request.error,
            created_at=request.created_at,
        )

    def list_sessions(self) -> list[SessionMeta]:
        return self.meta_repo.list()

    # ── housekeeping ─────────────────────────────────────────────────────────

    def sweep(self, retention_hours: int | None = None) -> tuple[int, int]:
        """
        Evict expired OTPs and pairing requests past retention.

        Returns:
            (OTP records removed, pairing requests removed)
        """
        now = self._clock()
        otp_count = self.otp_store.sweep(now)

        hours = retention_hours if retention_hours is not None else config.settings.PAIRING_RETENTION_HOURS
        evicted = self.registry.evict_older_than(now - timedelta(hours=hours))
        for request_id in evicted:
            self.coordinator.discard(request_id)
            pump = self._pumps.pop(request_id, None)
            if pump is not None:
                pump.cancel()
            self._spawn(self.protocol.close(request_id))
        return otp_count, len(evicted)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for background work (notifications, pairing code requests, SMS)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        await self.otp_store.flush()

    async def shutdown(self) -> None:
        """Cancel event pumps, flush pending work, release the protocol client."""
        pumps = list(self._pumps.values())
        for pump in pumps:
            pump.cancel()
        await asyncio.gather(*pumps, return_exceptions=True)
        await self.drain()
        await self.protocol.aclose()
