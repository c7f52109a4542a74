"""HTTP client for the protocol bridge sidecar."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

import httpx

from pairing import config
from pairing.errors import ExternalSessionError
from pairing.services.protocol import (
    Challenge,
    ConnectionClosed,
    ConnectionOpen,
    CredentialsUpdated,
    ProtocolClient,
    ProtocolEvent,
)

logger = logging.getLogger(__name__)


def _reason_code(reason) -> int | None:
    # Anything but an integer status maps to a plain disconnect
    if reason is None:
        return None
    try:
        return int(reason)
    except (TypeError, ValueError):
        logger.warning("Bridge: non-numeric close reason %r", reason)
        return None


def parse_event_line(line: str) -> ProtocolEvent | None:
    """
    Parse one NDJSON line from the bridge event stream.

    Line shapes:
      {"type": "qr", "qr": "<raw payload>"}
      {"type": "pairing_code", "code": "12345678"}
      {"type": "open"}
      {"type": "close", "reason": 401}
      {"type": "creds"}

    Returns:
        The protocol event, or None for blank, malformed, or unknown lines
    """
    stripped = line.strip()
    if not stripped:
        return None
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        logger.warning("Bridge: skipping malformed line: %r", stripped[:200])
        return None
    if not isinstance(payload, dict):
        logger.warning("Bridge: skipping non-object line: %r", stripped[:200])
        return None

    event_type = payload.get("type")
    if event_type == "qr" and payload.get("qr"):
        return Challenge(kind="qr", value=str(payload["qr"]))
    if event_type == "pairing_code" and payload.get("code"):
        return Challenge(kind="pairing_code", value=str(payload["code"]))
    if event_type == "open":
        return ConnectionOpen()
    if event_type == "close":
        return ConnectionClosed(reason_code=_reason_code(payload.get("reason")))
    if event_type == "creds":
        return CredentialsUpdated()

    logger.debug("Bridge: ignoring event type %r", event_type)
    return None


class BridgeProtocolClient(ProtocolClient):
    """
    Drives protocol sessions through the bridge sidecar.

    The bridge owns the sockets and credential files; this client starts a
    session per request id and reads its event stream as NDJSON.
    """

    supports_pairing_code = True

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        self._base_url = (base_url or config.settings.BRIDGE_URL).rstrip("/")
        self._timeout = timeout or config.settings.BRIDGE_TIMEOUT_SECONDS

    async def subscribe(self, request_id: str, phone: str) -> AsyncIterator[ProtocolEvent]:
        # The stream stays open for the life of the session, so no read timeout
        timeout = httpx.Timeout(self._timeout, read=None)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                async with client.stream(
                    "POST",
                    f"{self._base_url}/sessions",
                    json={"requestId": request_id, "phone": phone},
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        event = parse_event_line(line)
                        if event is not None:
                            yield event
        except httpx.HTTPError as exc:
            raise ExternalSessionError(f"Bridge session failed: {exc}") from exc

    async def request_pairing_code(self, request_id: str, phone_digits: str) -> str | None:
        """
        Request a numeric pairing code for an already started session.

        Raises:
            httpx.HTTPError: If the bridge is unreachable or rejects the request
        """
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                f"{self._base_url}/sessions/{request_id}/pairing-code",
                json={"phone": phone_digits},
            )
            response.raise_for_status()
            code = response.json().get("code")
            return str(code) if code else None

    async def export_credentials(self, request_id: str) -> dict[str, str]:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(f"{self._base_url}/sessions/{request_id}/credentials")
            response.raise_for_status()
            return {str(name): str(content) for name, content in response.json().items()}

    async def close(self, request_id: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                await client.delete(f"{self._base_url}/sessions/{request_id}")
        except httpx.HTTPError:
            logger.warning("Bridge: failed to close session %s", request_id)
