"""
In-memory rate limiting for pairing starts.

Every POST /pair sends an SMS and opens a protocol session, so starts are
capped per phone number and per client IP. State is process-local.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RateLimiter:
    """
    Sliding-window counter per key (phone number or IP).
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        # key -> timestamps of accepted requests, oldest first
        self._hits: dict[str, deque[datetime]] = defaultdict(deque)

    def check_rate_limit(self, key: str, max_requests: int, window_minutes: int = 60) -> bool:
        """
        Record a request for key if it is under the limit.

        Args:
            key: Identifier to rate limit, e.g. "phone:+1555..." or "ip:10.0.0.1"
            max_requests: Maximum requests allowed in the window
            window_minutes: Window length in minutes (default 60)

        Returns:
            True if under the limit, False if limit exceeded
        """
        return self.check_rate_limits({key: max_requests}, window_minutes)

    def check_rate_limits(self, limits: Mapping[str, int], window_minutes: int = 60) -> bool:
        """
        Record a request against every key only if all of them are under their limit.

        A rejection leaves every key's window untouched.

        Args:
            limits: key -> maximum requests allowed in the window
            window_minutes: Window length in minutes (default 60)

        Returns:
            True if all keys are under their limits, False otherwise
        """
        now = self._clock()
        cutoff = now - timedelta(minutes=window_minutes)
        for key, max_requests in limits.items():
            hits = self._hits[key]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= max_requests:
                return False

        for key in limits:
            self._hits[key].append(now)
        return True

    def cleanup_old_entries(self, max_age_hours: int = 2) -> int:
        """
        Drop keys with no hits in the last max_age_hours.

        Returns:
            Number of keys removed
        """
        cutoff = self._clock() - timedelta(hours=max_age_hours)
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]
        return len(stale)
