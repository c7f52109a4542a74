"""In-memory store for pairing OTPs."""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pairing import config
from pairing.errors import InvalidOtpError, InvalidRequestError, OtpExpiredError, OtpNotFoundError
from pairing.models.otp import OtpRecord
from pairing.services.sms_service import SmsService

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _generate_code() -> str:
    """Generate a uniformly random 6-digit code in 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


class OtpStore:
    """
    Issues, expires, and verifies one-time codes keyed by request id.

    All mutations are synchronous, so a single event loop never observes a
    half-applied change.
    """

    def __init__(
        self,
        sms: SmsService,
        expiry_minutes: int | None = None,
        clock: Clock = _utcnow,
    ) -> None:
        self._sms = sms
        self._expiry = timedelta(minutes=expiry_minutes or config.settings.OTP_EXPIRY_MINUTES)
        self._clock = clock
        self._records: dict[str, OtpRecord] = {}
        self._deliveries: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._records)

    def issue(self, request_id: str, phone: str) -> OtpRecord:
        """
        Create a fresh OTP for a request and dispatch it by SMS in the background.

        The code stays valid whether or not delivery succeeds.

        Args:
            request_id: Pairing request id
            phone: Recipient phone number (E.164)

        Returns:
            Newly created OtpRecord
        """
        now = self._clock()
        record = OtpRecord(
            request_id=request_id,
            code=_generate_code(),
            phone=phone,
            expires_at=now + self._expiry,
            created_at=now,
        )
        self._records[request_id] = record

        task = asyncio.create_task(self._deliver(record))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)
        return record

    async def _deliver(self, record: OtpRecord) -> None:
        ok = await self._sms.send_message(
            record.phone,
            f"Your pairing verification code is: {record.code}",
        )
        if not ok:
            logger.warning("OTP delivery may have failed for %s", record.phone)

    def get(self, request_id: str) -> OtpRecord | None:
        return self._records.get(request_id)

    def verify(self, request_id: str, code: str | None) -> OtpRecord:
        """
        Check a submitted code.

        Once a record is verified, any later submission succeeds without
        re-checking the code and without touching verified_at.

        Args:
            request_id: Pairing request id
            code: Code as submitted by the caller

        Returns:
            The verified OtpRecord

        Raises:
            OtpNotFoundError: No record for request_id
            OtpExpiredError: Record past expiry (evicted as a side effect)
            InvalidRequestError: Empty code
            InvalidOtpError: Code mismatch
        """
        record = self._records.get(request_id)
        if record is None:
            raise OtpNotFoundError("requestId not found or expired")

        now = self._clock()
        if record.is_expired(now):
            del self._records[request_id]
            raise OtpExpiredError("OTP expired")

        submitted = (code or "").strip()
        if not submitted:
            raise InvalidRequestError("otp required")

        if record.verified:
            return record

        if not secrets.compare_digest(submitted, record.code):
            raise InvalidOtpError("invalid otp")

        record.verified = True
        record.verified_at = now
        return record

    def sweep(self, now: datetime | None = None) -> int:
        """
        Remove every record whose expiry lies before now.

        Returns:
            Number of records removed
        """
        cutoff = now or self._clock()
        expired = [rid for rid, rec in self._records.items() if rec.expires_at < cutoff]
        for rid in expired:
            logger.info("Cleaning expired OTP for %s", rid)
            del self._records[rid]
        return len(expired)

    async def flush(self) -> None:
        """Wait for in-flight SMS deliveries (for clean shutdown and tests)."""
        if self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)
