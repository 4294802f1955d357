"""
F14 - Check orchestration engine.

Coordinates one DKIM/DMARC check for a single domain:
- Queries k1/k2/k3 CNAMEs and the _dmarc TXT record on every provider
- Consolidates per-provider answers into one record set
- Runs the DKIM validator and the common-mistake pass
- Probes www.<domain> and <domain>.<domain> when no DKIM record exists
- Runs the DMARC validator, falling back to the organisational domain
- Runs the consistency analyzer on the raw per-provider results
"""

from __future__ import annotations

import asyncio
import logging
from functools import reduce

from checkdmarc.utils import get_base_domain

from mailauth.checker.consistency import check_consistency
from mailauth.checker.dkim import (
    WWW_PREFIX,
    check_common_errors,
    has_dkim_records,
    points_at_known_target,
    validate_dkim,
)
from mailauth.checker.dmarc import validate_dmarc
from mailauth.checker.results import (
    DKIM_SELECTORS,
    DmarcValidationResult,
    ProviderResultBundle,
    RecordSet,
    ValidationError,
    ValidationResult,
    ValidationSummary,
)

logger = logging.getLogger(__name__)

DKIM_RECORD_TYPE = "CNAME"
DMARC_RECORD_TYPE = "TXT"
DMARC_PREFIX = "_dmarc"


def consolidate_records(bundle: ProviderResultBundle) -> RecordSet:
    """Merge every provider's answers into one record set.

    Values are de-duplicated per record name and sorted, so the result does
    not depend on which provider answered first.
    """
    merged: dict[str, set[str]] = {}
    for record_set in bundle.records.values():
        for name, values in record_set.items():
            merged.setdefault(name, set()).update(values)
    return {name: sorted(values) for name, values in merged.items()}


async def _query_rounds(resolver, rounds: list[tuple[str, str, str]]) -> ProviderResultBundle:
    bundles = await asyncio.gather(
        *(
            resolver.query_all_providers(host, record_type, prefix)
            for host, record_type, prefix in rounds
        )
    )
    return reduce(ProviderResultBundle.merge, bundles, ProviderResultBundle.empty())


async def run_domain_check(domain: str, resolver) -> ProviderResultBundle:
    """Query all providers for the DKIM selectors and the DMARC record of *domain*.

    Args:
        domain: The domain to check.
        resolver: A DnsResolver (or compatible object).

    Returns:
        The merged per-provider bundle for all four query rounds.
    """
    rounds = [(domain, DKIM_RECORD_TYPE, f"{selector}._domainkey") for selector in DKIM_SELECTORS]
    rounds.append((domain, DMARC_RECORD_TYPE, DMARC_PREFIX))
    return await _query_rounds(resolver, rounds)


async def probe_misplaced_dkim(domain: str, resolver) -> list[ValidationError]:
    """Look for the DKIM records at ``www.<domain>`` and ``<domain>.<domain>``.

    Catches users who published the records on the wrong host and therefore
    see nothing at the domain itself.  Only answers pointing at a known DKIM
    target count.
    """
    hosts = [] if domain.startswith(WWW_PREFIX) else [f"{WWW_PREFIX}{domain}"]
    hosts.append(f"{domain}.{domain}")

    rounds = [
        (host, DKIM_RECORD_TYPE, f"{selector}._domainkey")
        for host in hosts
        for selector in DKIM_SELECTORS
    ]
    probe_bundle = await _query_rounds(resolver, rounds)
    probe_records = {
        name: values
        for name, values in consolidate_records(probe_bundle).items()
        if points_at_known_target(values)
    }
    errors = check_common_errors(domain, probe_records).errors
    if errors:
        logger.info("Misplaced DKIM records found for %s: %d", domain, len(errors))
    return errors


async def check_root_dmarc(domain: str, resolver) -> DmarcValidationResult | None:
    """Validate the organisational domain's DMARC record for a subdomain.

    Returns:
        A valid DmarcValidationResult describing the fallback, or None when
        *domain* is its own organisational domain or the fallback record is
        itself missing or invalid.
    """
    root = get_base_domain(domain)
    if not root or root == domain:
        return None

    bundle = await resolver.query_all_providers(root, DMARC_RECORD_TYPE, DMARC_PREFIX)
    root_values = consolidate_records(bundle).get(f"{DMARC_PREFIX}.{root}", [])
    if not validate_dmarc(root_values).is_valid:
        return None

    logger.debug("Using organisational DMARC record of %s for %s", root, domain)
    return DmarcValidationResult(
        is_valid=True,
        using_root_domain=root,
        root_dmarc_records=root_values,
        original_domain=domain,
    )


async def validate_results(
    domain: str,
    bundle: ProviderResultBundle,
    resolver=None,
) -> ValidationSummary:
    """Validate one domain's multi-provider results.

    Args:
        domain: The checked domain.
        bundle: Raw per-provider results from ``run_domain_check``.
        resolver: Used for the supplementary live probes.  When None the
            probes are skipped and the summary depends only on *bundle*.

    Returns:
        The ValidationSummary for this run.
    """
    records = consolidate_records(bundle)

    # ---- DKIM ----
    primary = validate_dkim(domain, records)
    common = check_common_errors(domain, records)
    dkim = ValidationResult(
        is_valid=primary.is_valid and common.is_valid,
        errors=[*common.errors, *primary.errors],
    )

    if resolver is not None and not has_dkim_records(domain, records) and not common.errors:
        misplaced = await probe_misplaced_dkim(domain, resolver)
        if misplaced:
            dkim = ValidationResult(is_valid=False, errors=[*misplaced, *dkim.errors])

    # ---- DMARC ----
    dmarc_values = sorted(records.get(f"{DMARC_PREFIX}.{domain}", []))
    dmarc = validate_dmarc(dmarc_values)
    if (
        resolver is not None
        and not dmarc.is_valid
        and [error.type for error in dmarc.errors] == ["missingRecord"]
    ):
        dmarc = await check_root_dmarc(domain, resolver) or dmarc

    # ---- Consistency (raw results; consolidation would hide divergence) ----
    consistency = check_consistency(bundle)

    summary = ValidationSummary(dkim=dkim, dmarc=dmarc, consistency=consistency)
    logger.info(
        "Validation for %s: valid=%s dkim=%s dmarc=%s consistent=%s",
        domain,
        summary.is_valid,
        dkim.is_valid,
        dmarc.is_valid,
        consistency.consistent,
    )
    return summary
