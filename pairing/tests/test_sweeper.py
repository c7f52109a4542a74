"""Tests for the background sweeper task."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from pairing import config
from pairing.main import sweeper_task
from pairing.middleware.rate_limit import RateLimiter

pytestmark = pytest.mark.asyncio(loop_scope="session")


async def test_sweeper_evicts_expired_otps(orchestrator, clock):
    rid = await orchestrator.start_pairing("+15551234567")
    clock.advance(minutes=6)

    with patch.object(config.settings, "OTP_SWEEP_INTERVAL_SECONDS", 0.01):
        task = asyncio.create_task(sweeper_task(orchestrator, RateLimiter(clock=clock)))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert orchestrator.otp_store.get(rid) is None
    # The pairing request itself is still within retention
    assert orchestrator.registry.get(rid) is not None


async def test_sweeper_survives_errors(orchestrator):
    calls = []

    def flaky_sweep():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return 0, 0

    with patch.object(config.settings, "OTP_SWEEP_INTERVAL_SECONDS", 0.01):
        with patch.object(orchestrator, "sweep", flaky_sweep):
            task = asyncio.create_task(sweeper_task(orchestrator, RateLimiter()))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

    assert len(calls) >= 2
