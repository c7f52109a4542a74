"""Tests for environment-driven settings."""

from __future__ import annotations

import importlib

import pytest

from pairing import config


@pytest.fixture
def reload_config(monkeypatch):
    """Re-import config under a patched environment, restoring it afterwards."""

    def _reload(**env):
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)


def test_rate_limits_default(reload_config, monkeypatch):
    monkeypatch.delenv("PAIR_RATE_LIMIT_PER_PHONE", raising=False)
    monkeypatch.delenv("PAIR_RATE_LIMIT_PER_IP", raising=False)

    settings = reload_config().settings

    assert settings.PAIR_RATE_LIMIT_PER_PHONE == 5
    assert settings.PAIR_RATE_LIMIT_PER_IP == 20


def test_rate_limits_from_environment(reload_config):
    settings = reload_config(PAIR_RATE_LIMIT_PER_PHONE="2", PAIR_RATE_LIMIT_PER_IP="7").settings

    assert settings.PAIR_RATE_LIMIT_PER_PHONE == 2
    assert settings.PAIR_RATE_LIMIT_PER_IP == 7


def test_non_positive_otp_expiry_rejected(reload_config):
    with pytest.raises(RuntimeError, match="OTP_EXPIRY_MINUTES"):
        reload_config(OTP_EXPIRY_MINUTES="0")
