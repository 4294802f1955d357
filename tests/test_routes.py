"""
F34 - Integration tests for the API routes (mailauth/api/routes.py)

The Flask test client drives the real views; DNS is answered by the
FakeResolver injected through the app fixture.
"""

from __future__ import annotations

from unittest.mock import patch

from mailauth import get_services

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _ExplodingResolver:
    async def query_all_providers(self, domain, record_type, prefix=None):
        raise RuntimeError("resolver exploded")


def _lookup(client, domain="example.com", **kwargs):
    return client.get("/api/domain", query_string={"domain": domain}, **kwargs)


# ---------------------------------------------------------------------------
# Tests - GET /api/domain success
# ---------------------------------------------------------------------------


def test_domain_lookup_returns_results_and_validation(client):
    resp = _lookup(client)

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["domain"] == "example.com"
    assert set(data["results"]) == {"google", "cloudflare", "openDNS", "authoritative"}
    assert data["results"]["google"]["k2._domainkey.example.com"] == ["dkim2.mcsv.net"]
    assert data["results"]["authoritative"]["authoritativeServer"] == "ns1.example.net"
    assert data["results"]["authoritative"]["authoritativeServers"] == ["ns1.example.net"]
    validation = data["validation"]
    assert validation["isValid"] is True
    assert validation["dkim"] == {"isValid": True, "errors": []}
    assert validation["dmarc"] == {"isValid": True, "errors": []}
    assert validation["consistency"] == {"consistent": True, "hasSuccessfulResults": True}


def test_domain_is_extracted_from_url(client, resolver):
    resp = _lookup(client, "  https://Example.COM/contact?x=1 ")

    assert resp.status_code == 200
    assert resp.get_json()["domain"] == "example.com"
    assert {domain for domain, _, _ in resolver.calls} == {"example.com"}


def test_invalid_configuration_still_returns_200(client, resolver):
    resolver.answers = {}

    resp = _lookup(client)

    assert resp.status_code == 200
    validation = resp.get_json()["validation"]
    assert validation["isValid"] is False
    assert validation["dkim"]["errors"][0]["type"] == "missingRecords"
    assert validation["dmarc"]["errors"][0]["type"] == "missingRecord"


def test_wrong_subdomain_reported_with_expected_name(client, resolver):
    resolver.answers = {
        "k2._domainkey.www.example.com": ["dkim2.mcsv.net"],
        "_dmarc.example.com": ["v=DMARC1; p=none"],
    }

    resp = _lookup(client)

    errors = resp.get_json()["validation"]["dkim"]["errors"]
    assert errors[0] == {
        "type": "wrongSubdomain",
        "message": "DKIM record published for incorrect subdomain",
        "actual": "k2._domainkey.www.example.com",
        "expected": "k2._domainkey.example.com",
    }


def test_successful_lookup_is_logged(client, query_log):
    _lookup(client, headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

    entries = query_log.entries()
    assert len(entries) == 1
    entry = entries[0]
    assert entry["success"] is True
    assert entry["ip"] == "203.0.113.7"
    assert entry["validationSummary"] == {"isValid": True, "consistencyIssue": False}
    assert "google" in entry["results"]


# ---------------------------------------------------------------------------
# Tests - GET /api/domain errors
# ---------------------------------------------------------------------------


def test_missing_domain_parameter(client):
    resp = client.get("/api/domain")

    assert resp.status_code == 400
    assert resp.get_json() == {"error": "A valid domain parameter is required"}


def test_blank_domain_parameter(client):
    resp = _lookup(client, "   ")

    assert resp.status_code == 400


def test_repeated_domain_parameter(client):
    resp = client.get("/api/domain?domain=example.com&domain=example.org")

    assert resp.status_code == 400


def test_domain_without_host(client):
    resp = _lookup(client, "/just/a/path")

    assert resp.status_code == 400


def test_non_get_method_not_allowed(client, resolver):
    for method in ("POST", "PUT", "PATCH", "DELETE", "OPTIONS"):
        resp = client.open("/api/domain?domain=example.com", method=method)

        assert resp.status_code == 405, method
        assert resp.headers["Allow"] == "GET"
        assert resp.get_json() == {"error": "Method not allowed"}
    assert resolver.calls == []


def test_log_failure_does_not_hide_result(client, query_log):
    with patch.object(query_log, "log", side_effect=TypeError("not JSON serializable")):
        resp = _lookup(client)

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["domain"] == "example.com"
    assert data["validation"]["isValid"] is True


def test_rate_limit_returns_429(client, query_log):
    for _ in range(5):
        assert _lookup(client).status_code == 200

    resp = _lookup(client)

    assert resp.status_code == 429
    error = resp.get_json()["error"]
    assert "rate limit" in error
    assert "127.0.0.1" in error
    newest = query_log.entries(limit=1)[0]
    assert newest["success"] is False
    assert newest["errors"][0]["type"] == "rateLimit"


def test_rate_limit_is_keyed_by_forwarded_ip(client):
    for _ in range(5):
        _lookup(client, headers={"X-Forwarded-For": "203.0.113.7"})

    assert _lookup(client, headers={"X-Forwarded-For": "203.0.113.7"}).status_code == 429
    assert _lookup(client, headers={"X-Forwarded-For": "203.0.113.8"}).status_code == 200


def test_rate_limited_request_does_not_query_dns(client, resolver, throttler):
    throttler.default_limit = 0

    resp = _lookup(client)

    assert resp.status_code == 429
    assert resolver.calls == []


def test_resolver_failure_returns_500(app, client, query_log):
    get_services(app)["resolver"] = _ExplodingResolver()

    resp = _lookup(client)

    assert resp.status_code == 500
    assert resp.get_json() == {
        "error": "Failed to process DNS lookup request",
        "message": "resolver exploded",
    }
    entry = query_log.entries(limit=1)[0]
    assert entry["success"] is False
    assert entry["errors"] == [{"type": "serverError", "message": "resolver exploded"}]


# ---------------------------------------------------------------------------
# Tests - introspection endpoints
# ---------------------------------------------------------------------------


def test_health(client):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["status"] == "ok"
    assert data["service"] == "DKIM/DMARC Checker"
    assert "timestamp" in data


def test_logs_newest_first_with_limit(client):
    _lookup(client, "a.example.com")
    _lookup(client, "b.example.com")
    _lookup(client, "c.example.com")

    resp = client.get("/api/logs?limit=2")

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["count"] == 2
    assert [entry["domain"] for entry in data["entries"]] == ["c.example.com", "b.example.com"]


def test_logs_empty(client):
    data = client.get("/api/logs").get_json()

    assert data == {"count": 0, "entries": []}


def test_security_headers_present(client):
    resp = client.get("/api/health")

    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert "default-src 'none'" in resp.headers["Content-Security-Policy"]
