"""
Pytest configuration and fixtures for pairing tests.
"""

from __future__ import annotations

import asyncio
import os
from collections import defaultdict
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

# Set test environment variables before importing config
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "")

from pairing.main import app  # noqa: E402
from pairing.middleware.rate_limit import RateLimiter  # noqa: E402
from pairing.repos.otp_repo import OtpStore  # noqa: E402
from pairing.repos.pairing_repo import SessionRegistry  # noqa: E402
from pairing.repos.session_meta_repo import SessionMetaRepo  # noqa: E402
from pairing.services.orchestrator import PairingOrchestrator  # noqa: E402
from pairing.services.protocol import ProtocolClient  # noqa: E402
from pairing.services.sms_service import SmsService  # noqa: E402


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeProtocolClient(ProtocolClient):
    """
    In-process protocol client driven by the test.

    Events are delivered per request id in emission order. `script` events
    are replayed automatically with their delays; `emit` pushes one event and
    waits until the orchestrator has finished handling it. Emitting an
    exception makes the session crash with it.
    """

    def __init__(
        self,
        script: list[tuple[float, object]] | None = None,
        pairing_code: str | Exception | None = None,
        pairing_code_delay: float = 0.0,
        credentials: dict[str, str] | None = None,
    ) -> None:
        self.script = script or []
        self.pairing_code = pairing_code
        self.pairing_code_delay = pairing_code_delay
        self.supports_pairing_code = pairing_code is not None
        self.credentials = credentials if credentials is not None else {"creds.json": '{"me": "x"}'}
        self.subscribed: list[str] = []
        self.pairing_code_requests: list[tuple[str, str]] = []
        self.closed: list[str] = []
        self._queues: dict[str, asyncio.Queue] = defaultdict(asyncio.Queue)
        self._players: list[asyncio.Task] = []

    async def subscribe(self, request_id, phone):
        self.subscribed.append(request_id)
        queue = self._queues[request_id]
        if self.script:
            self._players.append(asyncio.create_task(self._play(request_id)))
        while True:
            event = await queue.get()
            try:
                if isinstance(event, BaseException):
                    raise event
                yield event
            finally:
                queue.task_done()

    async def _play(self, request_id):
        for delay, event in self.script:
            await asyncio.sleep(delay)
            self._queues[request_id].put_nowait(event)

    async def emit(self, request_id, event) -> None:
        queue = self._queues[request_id]
        queue.put_nowait(event)
        await queue.join()

    async def request_pairing_code(self, request_id, phone_digits):
        self.pairing_code_requests.append((request_id, phone_digits))
        if self.pairing_code_delay:
            await asyncio.sleep(self.pairing_code_delay)
        if isinstance(self.pairing_code, Exception):
            raise self.pairing_code
        return self.pairing_code

    async def export_credentials(self, request_id):
        return dict(self.credentials)

    async def close(self, request_id):
        self.closed.append(request_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sms():
    """SMS capability that always succeeds and records calls."""
    service = AsyncMock(spec=SmsService)
    service.send_message.return_value = True
    return service


@pytest.fixture
def protocol():
    return FakeProtocolClient()


@pytest.fixture
def make_orchestrator(sms, clock, tmp_path):
    """Factory so tests can swap in a differently scripted protocol client."""
    created: list[PairingOrchestrator] = []

    def _make(protocol: ProtocolClient, response_timeout: float = 0.2) -> PairingOrchestrator:
        orchestrator = PairingOrchestrator(
            protocol=protocol,
            sms=sms,
            otp_store=OtpStore(sms, expiry_minutes=5, clock=clock),
            registry=SessionRegistry(clock=clock),
            meta_repo=SessionMetaRepo(tmp_path / "sessions"),
            response_timeout=response_timeout,
            clock=clock,
        )
        created.append(orchestrator)
        return orchestrator

    return _make


@pytest_asyncio.fixture(loop_scope="session")
async def orchestrator(make_orchestrator, protocol):
    orch = make_orchestrator(protocol)
    yield orch
    await orch.shutdown()


@pytest_asyncio.fixture(loop_scope="session")
async def async_client(orchestrator, clock):
    """Async HTTP client against the ASGI app, wired to the test orchestrator."""
    app.state.orchestrator = orchestrator
    app.state.rate_limiter = RateLimiter(clock=clock)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
