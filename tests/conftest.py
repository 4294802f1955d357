"""
Shared pytest fixtures for the DKIM/DMARC checker test suite.

All fixtures use an in-memory SQLite database and a fake resolver so
tests are fully isolated and require no external services or real DNS
lookups.
"""

from __future__ import annotations

import pytest

from mailauth import create_app
from mailauth import db as _db
from mailauth.checker.results import (
    ALL_PROVIDERS,
    PROVIDER_AUTHORITATIVE,
    AuthoritativeInfo,
    ProviderResultBundle,
)
from mailauth.config import Config
from mailauth.utils.query_log import QueryLog
from mailauth.utils.rate_limit import RequestThrottler

# ---------------------------------------------------------------------------
# Test configuration
# ---------------------------------------------------------------------------


class TestConfig(Config):
    """Minimal Flask config for automated testing."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS: dict = {}
    DNS_TIMEOUT_SECONDS = 1.0
    RATE_LIMIT_PER_HOUR = 5
    RATE_LIMIT_OVERRIDES: dict = {}
    QUERY_LOG_MAX_ENTRIES = 50
    QUERY_LOG_PERSIST = False


# ---------------------------------------------------------------------------
# Fake resolver
# ---------------------------------------------------------------------------


class FakeResolver:
    """Answers ``query_all_providers`` from a static table.

    Args:
        answers: Record name -> values returned by every provider.
        per_provider: Provider -> {record name -> values}; overrides
            *answers* for that provider.
        nameservers: Reported as the authoritative candidate list.
    """

    def __init__(
        self,
        answers: dict[str, list[str]] | None = None,
        per_provider: dict[str, dict[str, list[str]]] | None = None,
        nameservers: list[str] | None = None,
    ) -> None:
        self.answers = answers or {}
        self.per_provider = per_provider or {}
        self.nameservers = nameservers if nameservers is not None else ["ns1.example.net"]
        self.calls: list[tuple[str, str, str | None]] = []

    async def query_all_providers(self, domain, record_type, prefix=None):
        self.calls.append((domain, record_type, prefix))
        full_name = f"{prefix}.{domain}" if prefix else domain
        bundle = ProviderResultBundle()
        answered = False
        for provider in ALL_PROVIDERS:
            table = self.per_provider.get(provider, self.answers)
            values = list(table.get(full_name, []))
            bundle.set_records(provider, full_name, values)
            if provider == PROVIDER_AUTHORITATIVE and values:
                answered = True
        bundle.authoritative = AuthoritativeInfo(
            server=self.nameservers[0] if answered and self.nameservers else None,
            servers=list(self.nameservers),
        )
        return bundle


VALID_ANSWERS = {
    "k2._domainkey.example.com": ["dkim2.mcsv.net"],
    "k3._domainkey.example.com": ["dkim3.mcsv.net"],
    "_dmarc.example.com": ["v=DMARC1; p=reject"],
}


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def resolver():
    """A fake resolver publishing a valid k2/k3 + DMARC setup for example.com."""
    return FakeResolver(VALID_ANSWERS)


@pytest.fixture(scope="function")
def throttler():
    return RequestThrottler(default_limit=TestConfig.RATE_LIMIT_PER_HOUR)


@pytest.fixture(scope="function")
def query_log():
    return QueryLog(max_entries=TestConfig.QUERY_LOG_MAX_ENTRIES)


@pytest.fixture(scope="function")
def app(resolver, throttler, query_log):
    """Create a Flask application instance backed by an in-memory database.

    A fresh database is created for every test function and torn down
    after the function completes, guaranteeing full isolation.
    """
    flask_app = create_app(
        TestConfig,
        resolver=resolver,
        throttler=throttler,
        query_log=query_log,
    )

    with flask_app.app_context():
        _db.create_all()

        yield flask_app

        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    """Return a Flask test client."""
    return app.test_client()


@pytest.fixture(scope="function")
def db(app):
    """Yield the SQLAlchemy db object within an active application context."""
    with app.app_context():
        yield _db
