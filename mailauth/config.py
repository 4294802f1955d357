"""
F02 - Configuration module for the DKIM/DMARC publication checker.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = "False") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def parse_rate_limit_overrides(raw: str) -> dict[str, int]:
    """Parse an override table such as ``"127.0.0.1=1000,192.168.1.*=100"``.

    Entries that are empty, lack ``=`` or carry a non-integer limit are
    skipped with a warning.

    Args:
        raw: Comma-separated ``pattern=limit`` pairs.

    Returns:
        A dict mapping IP address or ``a.b.c.*`` pattern to hourly limit.
    """
    overrides: dict[str, int] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        pattern, sep, limit = item.partition("=")
        if not sep:
            logger.warning("Ignoring rate-limit override without '=': %r", item)
            continue
        try:
            overrides[pattern.strip()] = int(limit.strip())
        except ValueError:
            logger.warning("Ignoring rate-limit override with invalid limit: %r", item)
    return overrides


class Config:
    """Base configuration shared by all environments."""

    # DNS resolution
    DNS_TIMEOUT_SECONDS: float = float(os.environ.get("DNS_TIMEOUT_SECONDS", "10"))
    # Used for NS discovery and nameserver address lookups so results do not
    # depend on the host's own resolver configuration.
    DNS_TRUSTED_RESOLVER: str = os.environ.get("DNS_TRUSTED_RESOLVER", "8.8.8.8")

    # Per-IP throttling
    RATE_LIMIT_PER_HOUR: int = int(os.environ.get("RATE_LIMIT_PER_HOUR", "120"))
    RATE_LIMIT_OVERRIDES: dict[str, int] = parse_rate_limit_overrides(
        os.environ.get("RATE_LIMIT_OVERRIDES", "127.0.0.1=1000,192.168.1.*=100")
    )

    # Query log: the in-memory ring buffer is always kept; database
    # persistence is opt-in for hosts with a writable disk.
    QUERY_LOG_MAX_ENTRIES: int = int(os.environ.get("QUERY_LOG_MAX_ENTRIES", "500"))
    QUERY_LOG_PERSIST: bool = _env_flag("ENABLE_QUERY_LOG_PERSISTENCE")

    # Database
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "DATABASE_URL",
        "sqlite:///mailauth.db",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    SQLALCHEMY_ENGINE_OPTIONS: dict = {
        "connect_args": {"timeout": 30},
    }

    # Upload / payload limits
    MAX_CONTENT_LENGTH: int = 1 * 1024 * 1024  # 1 MB
