"""
F31 - Command-line DKIM/DMARC check.

Runs the same multi-provider check as ``GET /api/domain`` without starting
the web application, and prints the JSON payload to stdout.  Useful from
cron, CI pipelines or a shell while fixing a customer's DNS.

USAGE
=====
  # Check one domain
  python check_domain.py example.com

  # Several domains, URLs are accepted too
  python check_domain.py example.com https://www.example.org/contact

  # Shorter per-query timeout and DEBUG-level logging
  python check_domain.py example.com --timeout 3 --verbose

EXIT CODES
==========
  0 - Every checked domain is valid
  1 - Fatal error (e.g. bad arguments, unexpected exception)
  2 - At least one domain has DKIM, DMARC or consistency issues
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from typing import Any

# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Check DKIM and DMARC publication for one or more domains.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "domains",
        nargs="+",
        metavar="DOMAIN",
        help="Domain or URL to check.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Per-query DNS timeout in seconds (default: 10).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Enable DEBUG-level logging output.",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _configure_logging(verbose: bool) -> logging.Logger:
    """Configure root logger for the script.

    Log lines go to stderr so stdout carries only the JSON payload.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    return logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Check
# ---------------------------------------------------------------------------


async def _check(domains: list[str], timeout: float) -> list[dict[str, Any]]:
    from mailauth.checker.engine import run_domain_check, validate_results
    from mailauth.checker.resolver import DnsResolver

    resolver = DnsResolver(timeout=timeout)
    payloads: list[dict[str, Any]] = []
    for domain in domains:
        results = await run_domain_check(domain, resolver)
        validation = await validate_results(domain, results, resolver)
        payloads.append(
            {
                "domain": domain,
                "results": results.to_dict(),
                "validation": validation.to_dict(),
            }
        )
    return payloads


def main(argv: list[str] | None = None) -> int:
    """Run the check and print the results.

    Returns:
        Integer exit code: 0 all valid, 2 issues found, 1 fatal error.
    """
    args = _parse_args(argv)
    logger = _configure_logging(args.verbose)

    from mailauth.utils.domain import extract_domain

    domains = [extract_domain(raw).rstrip(".").lower() for raw in args.domains]
    if not all(domains):
        logger.error("Could not extract a domain from: %s", args.domains)
        return 1

    t0 = time.monotonic()
    try:
        payloads = asyncio.run(_check(domains, args.timeout))
    except Exception:
        logger.exception("Check failed for %s.", ", ".join(domains))
        return 1

    logger.info("Checked %d domain(s) in %.1fs", len(payloads), time.monotonic() - t0)
    output = payloads[0] if len(payloads) == 1 else payloads
    print(json.dumps(output, indent=2))

    return 0 if all(payload["validation"]["isValid"] for payload in payloads) else 2


# ---------------------------------------------------------------------------
# Script entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
