"""
F12 - DKIM CNAME validation.

Checks that the k1/k2/k3 selectors of a domain delegate to the expected
email provider targets:
- k2 -> dkim2.mcsv.net and k3 -> dkim3.mcsv.net (preferred pair)
- k1 -> dkim.mcsv.net (single-record fallback)

A second, independent pass looks for the two most common publishing
mistakes: records created under ``www.`` and records where the DNS host
appended the domain a second time.
"""

from __future__ import annotations

import logging

from mailauth.checker.results import (
    DKIM_K1_TARGET,
    DKIM_K2_TARGET,
    DKIM_K3_TARGET,
    DKIM_SELECTORS,
    KNOWN_DKIM_TARGETS,
    RecordSet,
    ValidationError,
    ValidationResult,
)

logger = logging.getLogger(__name__)

WWW_PREFIX = "www."


def _normalize_target(value: str) -> str:
    return value.strip().rstrip(".").lower()


def _has_target(values: list[str], target: str) -> bool:
    """Return True if *values* contains exactly *target* (not as a substring)."""
    return any(_normalize_target(value) == target for value in values)


def points_at_known_target(values: list[str]) -> bool:
    return any(_normalize_target(value) in KNOWN_DKIM_TARGETS for value in values)


def canonical_domain(domain: str) -> str:
    """Return *domain* without a leading ``www.`` label."""
    domain = domain.strip().rstrip(".").lower()
    if domain.startswith(WWW_PREFIX) and domain.count(".") >= 2:
        return domain[len(WWW_PREFIX):]
    return domain


def selector_records(domain: str, records: RecordSet, selector: str) -> list[str]:
    return records.get(f"{selector}._domainkey.{domain}") or []


def validate_dkim(domain: str, records: RecordSet) -> ValidationResult:
    """Validate the k1/k2/k3 DKIM CNAMEs of *domain*.

    Args:
        domain: The checked domain.
        records: Consolidated record set (record name -> values).

    Returns:
        A ValidationResult; valid only through one of the two success
        paths (k2+k3 pair or k1 fallback).
    """
    result = ValidationResult(is_valid=False)

    k1_records = selector_records(domain, records, "k1")
    k2_records = selector_records(domain, records, "k2")
    k3_records = selector_records(domain, records, "k3")

    if k2_records and k3_records:
        if _has_target(k2_records, DKIM_K2_TARGET) and _has_target(k3_records, DKIM_K3_TARGET):
            result.is_valid = True
        elif _has_target(k2_records, DKIM_K3_TARGET) and _has_target(k3_records, DKIM_K2_TARGET):
            result.errors.append(
                ValidationError(
                    type="switchedRecords",
                    message=(
                        "DKIM records appear to be switched - "
                        "k2 points to dkim3 and k3 points to dkim2"
                    ),
                )
            )
        else:
            result.errors.append(
                ValidationError(
                    type="incorrectDestination",
                    message="DKIM records found but point to incorrect destinations",
                )
            )
        return result

    if _has_target(k1_records, DKIM_K1_TARGET):
        result.is_valid = True
    elif not (k1_records or k2_records or k3_records):
        result.errors.append(ValidationError(type="missingRecords", message="No DKIM records found"))
    else:
        result.errors.append(
            ValidationError(
                type="invalidRecords",
                message="DKIM records found but are not configured correctly",
            )
        )
    return result


def check_common_errors(domain: str, records: RecordSet) -> ValidationResult:
    """Detect DKIM records published at ``www.`` or with the domain doubled.

    The checked domain is compared in its canonical (non-www) form, so the
    same finding is produced whether the ``www.`` label sits on the record
    name or on the domain the user typed.

    Returns:
        A ValidationResult that is valid when no mistake was found.
    """
    result = ValidationResult(is_valid=True)
    base = canonical_domain(domain)
    checked = domain.strip().rstrip(".").lower()

    # Doubled forms of both the typed and the canonical domain.
    duplicate_markers = {f"_domainkey.{d}.{d}" for d in (checked, base)}
    doubled = {
        name: marker
        for name in records
        for marker in duplicate_markers
        if marker in name and records[name]
    }

    wrong_marker = f"_domainkey.{WWW_PREFIX}{base}"
    for name in sorted(records):
        # Only flag keys that actually point at a DKIM target.
        if name not in doubled and wrong_marker in name and points_at_known_target(records[name]):
            result.errors.append(
                ValidationError(
                    type="wrongSubdomain",
                    message="DKIM record published for incorrect subdomain",
                    actual=name,
                    expected=name.replace(wrong_marker, f"_domainkey.{base}", 1),
                )
            )

    for name in sorted(doubled):
        result.errors.append(
            ValidationError(
                type="duplicateDomain",
                message="DKIM record contains duplicate domain",
                actual=name,
                expected=name.replace(doubled[name], f"_domainkey.{base}", 1),
            )
        )

    if result.errors:
        result.is_valid = False
        logger.info(
            "Common DKIM mistakes for %s: %s",
            domain,
            ", ".join(error.type for error in result.errors),
        )
    return result


def has_dkim_records(domain: str, records: RecordSet) -> bool:
    """Return True if any of k1/k2/k3 has at least one value."""
    return any(selector_records(domain, records, selector) for selector in DKIM_SELECTORS)
