"""
F27 - API blueprint routes.

Provides the JSON endpoint the front end calls to check a domain, plus
health and recent-lookup introspection endpoints.

GET /api/domain?domain=<domain>
    200 {domain, results, validation}
    400 missing/invalid domain parameter
    405 any method other than GET
    429 per-IP rate limit exceeded
    500 unexpected resolver/validator failure
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from flask import current_app, jsonify, request

from mailauth import get_services
from mailauth.api import bp
from mailauth.checker.engine import run_domain_check, validate_results
from mailauth.checker.results import ValidationSummary
from mailauth.utils.domain import extract_domain

logger = logging.getLogger(__name__)

DEFAULT_LOG_LIMIT = 100


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client_ip() -> str:
    """Return the first X-Forwarded-For entry, else the socket address."""
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return request.remote_addr or "0.0.0.0"


def _validation_log_summary(validation: ValidationSummary) -> dict[str, Any]:
    """Condense a ValidationSummary into the fields kept in the query log."""
    summary: dict[str, Any] = {"isValid": validation.is_valid}
    dkim_errors = [error.type for error in validation.dkim.errors]
    dmarc_errors = [error.type for error in validation.dmarc.errors]
    if dkim_errors:
        summary["dkimErrors"] = dkim_errors
    if dmarc_errors:
        summary["dmarcErrors"] = dmarc_errors
    summary["consistencyIssue"] = (
        not validation.consistency.consistent and validation.consistency.has_successful_results
    )
    return summary


# ---------------------------------------------------------------------------
# Domain check
# ---------------------------------------------------------------------------


@bp.route(
    "/domain",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    provide_automatic_options=False,
)
async def domain_lookup():
    """Check the DKIM and DMARC publication of one domain."""
    if request.method != "GET":
        return jsonify({"error": "Method not allowed"}), 405, {"Allow": "GET"}

    values = request.args.getlist("domain")
    if len(values) != 1 or not values[0].strip():
        return jsonify({"error": "A valid domain parameter is required"}), 400

    domain = extract_domain(values[0]).rstrip(".").lower()
    if not domain:
        return jsonify({"error": "A valid domain parameter is required"}), 400

    services = get_services(current_app)
    resolver = services["resolver"]
    throttler = services["throttler"]
    query_log = services["query_log"]

    client_ip = _client_ip()

    if not throttler.check_allowed(client_ip):
        limit = throttler.get_limit_for_ip(client_ip)
        query_log.log(
            {
                "domain": domain,
                "success": False,
                "ip": client_ip,
                "errors": [
                    {"type": "rateLimit", "message": f"Rate limit exceeded from {client_ip}"}
                ],
            }
        )
        return (
            jsonify(
                {
                    "error": (
                        f"Too many lookups from {client_ip}: the rate limit is {limit} "
                        "per hour. Please try again later."
                    )
                }
            ),
            429,
        )

    try:
        results = await run_domain_check(domain, resolver)
        validation = await validate_results(domain, results, resolver)
    except Exception as exc:
        logger.exception("Error processing DNS request for %s", domain)
        query_log.log(
            {
                "domain": domain,
                "success": False,
                "ip": client_ip,
                "errors": [{"type": "serverError", "message": str(exc) or "Unknown error"}],
            }
        )
        return (
            jsonify({"error": "Failed to process DNS lookup request", "message": str(exc)}),
            500,
        )

    results_json = results.to_dict()
    # The check already succeeded; a logging failure must not hide it.
    try:
        query_log.log(
            {
                "domain": domain,
                "success": True,
                "results": results_json,
                "ip": client_ip,
                "validationSummary": _validation_log_summary(validation),
            }
        )
    except Exception:
        logger.exception("Failed to record lookup for %s", domain)

    return jsonify(
        {
            "domain": domain,
            "results": results_json,
            "validation": validation.to_dict(),
        }
    )


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


@bp.route("/health")
def health():
    """Public health-check endpoint."""
    return jsonify(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "DKIM/DMARC Checker",
        }
    )


@bp.route("/logs")
def recent_lookups():
    """Return the most recent lookups from the in-memory query log, newest first."""
    query_log = get_services(current_app)["query_log"]
    limit = request.args.get("limit", DEFAULT_LOG_LIMIT, type=int)
    limit = max(0, min(limit, query_log.max_entries))
    entries = query_log.entries(limit)
    return jsonify({"count": len(entries), "entries": entries})
