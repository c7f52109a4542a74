"""
Boundary to the external messaging-protocol session.

The orchestrator only sees an ordered stream of events per request id and a
few optional capabilities. How a concrete client produces them (sidecar
bridge, in-process library, scripted fake) is its own business.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Literal

# Close reason the protocol uses when the device was unlinked from the phone
LOGGED_OUT_REASON = 401


@dataclass(frozen=True)
class Challenge:
    """A QR payload or numeric pairing code the user has to act on."""

    kind: Literal["qr", "pairing_code"]
    value: str


@dataclass(frozen=True)
class ConnectionOpen:
    """The session is authenticated and usable."""


@dataclass(frozen=True)
class ConnectionClosed:
    """The connection dropped. reason_code is the protocol status code, if any."""

    reason_code: int | None = None

    @property
    def logged_out(self) -> bool:
        return self.reason_code == LOGGED_OUT_REASON


@dataclass(frozen=True)
class CredentialsUpdated:
    """The client persisted new credential material."""


ProtocolEvent = Challenge | ConnectionOpen | ConnectionClosed | CredentialsUpdated


class ProtocolClient(ABC):
    """Capabilities the pairing flow needs from a protocol session provider."""

    supports_pairing_code: bool = False

    @abstractmethod
    def subscribe(self, request_id: str, phone: str) -> AsyncIterator[ProtocolEvent]:
        """
        Start a session scoped to request_id and yield its events in order.

        Raises:
            ExternalSessionError: If the session cannot be started or crashes
        """

    async def request_pairing_code(self, request_id: str, phone_digits: str) -> str | None:
        """
        Ask the running session for a numeric pairing code.

        Returns None when the client has no such capability.
        """
        return None

    @abstractmethod
    async def export_credentials(self, request_id: str) -> dict[str, str]:
        """Return the session's credential material as name -> content."""

    async def close(self, request_id: str) -> None:
        """Tear down the session for request_id, if the client keeps one."""
        return None

    async def aclose(self) -> None:
        """Release client-wide resources on shutdown."""
        return None
