"""
F33 - In-memory per-IP request throttler.

Counts lookups per client IP in a fixed one-hour window that starts with
the IP's first request and is reset lazily on the first request after it
expires.  No external dependencies (no Redis): the counter table lives in
the owning application instance.

Thread safety note:
  Flask's development server and most WSGI servers handle requests on
  several threads.  The check and the increment happen under one lock so
  a burst of concurrent requests from the same IP can never be admitted
  beyond its quota.

Limits:
  A default hourly quota applies to every IP unless the override table
  has an entry for the exact IP or for its ``a.b.c.*`` IPv4 network.

Usage:
    throttler = RequestThrottler(120, {"127.0.0.1": 1000, "192.168.1.*": 100})

    if not throttler.check_allowed(client_ip):
        return jsonify({"error": "Rate limit exceeded"}), 429
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Final

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_LIMIT_PER_HOUR: Final[int] = 30

# Length of one counting window.
WINDOW_SECONDS: Final[int] = 60 * 60


@dataclass
class _Window:
    count: int
    reset_at: float


class RequestThrottler:
    """Per-IP hourly request quota.

    Args:
        default_limit: Requests allowed per IP per window.
        overrides: Exact IP or ``a.b.c.*`` pattern -> limit.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        default_limit: int = DEFAULT_LIMIT_PER_HOUR,
        overrides: dict[str, int] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_limit = default_limit
        self.overrides = dict(overrides or {})
        self._clock = clock
        self._lock = threading.Lock()
        # Keys are client IP strings.
        #
        # Example entries:
        #   "203.0.113.7" -> _Window(count=3, reset_at=1_700_003_600.0)
        self._windows: dict[str, _Window] = {}

    def get_limit_for_ip(self, ip: str) -> int:
        """Return the hourly limit for *ip*; overrides win over the default."""
        if ip in self.overrides:
            return self.overrides[ip]

        parts = ip.split(".")
        if len(parts) == 4:
            network = f"{parts[0]}.{parts[1]}.{parts[2]}.*"
            if network in self.overrides:
                return self.overrides[network]

        return self.default_limit

    def check_allowed(self, ip: str) -> bool:
        """Record a request from *ip* and return whether it is allowed.

        Denied requests are not counted.

        Returns:
            True  - under the quota; the request has been counted.
            False - the quota for the current window is used up.
        """
        limit = self.get_limit_for_ip(ip)

        with self._lock:
            now = self._clock()
            window = self._windows.get(ip)
            if window is None or window.reset_at <= now:
                window = _Window(count=0, reset_at=now + WINDOW_SECONDS)
                self._windows[ip] = window

            if window.count < limit:
                window.count += 1
                return True

            remaining = int(window.reset_at - now)

        logger.warning(
            "Rate limit active: ip=%s limit=%d remaining=%ds",
            ip,
            limit,
            remaining,
        )
        return False

    def reset(self, ip: str) -> None:
        """Clear the counter for a single IP."""
        with self._lock:
            self._windows.pop(ip, None)

    def reset_all_counts(self) -> None:
        """Remove all counters.

        The table is already empty after a process restart, so this is
        mainly for test isolation.
        """
        with self._lock:
            self._windows.clear()
