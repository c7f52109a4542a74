"""Tests for the in-memory pairing rate limiter."""

from __future__ import annotations

from pairing.middleware.rate_limit import RateLimiter


def test_allows_up_to_limit(clock):
    limiter = RateLimiter(clock=clock)
    results = [limiter.check_rate_limit("phone:+1555", max_requests=3) for _ in range(4)]
    assert results == [True, True, True, False]


def test_keys_are_independent(clock):
    limiter = RateLimiter(clock=clock)
    assert limiter.check_rate_limit("phone:a", max_requests=1) is True
    assert limiter.check_rate_limit("phone:b", max_requests=1) is True
    assert limiter.check_rate_limit("phone:a", max_requests=1) is False


def test_window_slides(clock):
    limiter = RateLimiter(clock=clock)
    assert limiter.check_rate_limit("ip:1", max_requests=1, window_minutes=60) is True
    clock.advance(minutes=59)
    assert limiter.check_rate_limit("ip:1", max_requests=1, window_minutes=60) is False
    clock.advance(minutes=2)
    assert limiter.check_rate_limit("ip:1", max_requests=1, window_minutes=60) is True


def test_cleanup_old_entries(clock):
    limiter = RateLimiter(clock=clock)
    limiter.check_rate_limit("old", max_requests=5)
    clock.advance(hours=3)
    limiter.check_rate_limit("new", max_requests=5)

    assert limiter.cleanup_old_entries(max_age_hours=2) == 1
    # "old" starts from an empty window again
    assert limiter.check_rate_limit("old", max_requests=1) is True


def test_multi_key_rejection_records_nothing(clock):
    limiter = RateLimiter(clock=clock)
    assert limiter.check_rate_limit("ip:a", max_requests=1) is True

    assert limiter.check_rate_limits({"phone:+1": 1, "ip:a": 1}) is False
    # The phone window was not charged for the rejected request
    assert limiter.check_rate_limit("phone:+1", max_requests=1) is True


def test_multi_key_acceptance_records_every_key(clock):
    limiter = RateLimiter(clock=clock)
    assert limiter.check_rate_limits({"phone:+1": 2, "ip:a": 1}) is True

    assert limiter.check_rate_limit("ip:a", max_requests=1) is False
    assert limiter.check_rate_limit("phone:+1", max_requests=2) is True
    assert limiter.check_rate_limit("phone:+1", max_requests=2) is False
