"""
F11 - DMARC record validation.

Deliberately minimal: the checker only confirms that exactly one DMARC
record is published and that it carries a recognised policy.
- Filters TXT values to those containing ``v=DMARC1``
- No record -> missingRecord
- More than one record -> multipleRecords (receivers treat this as no policy)
- One record without p=reject|quarantine|none -> invalidSyntax

Other tags (sp, adkim, aspf, rua, fo, ...) are accepted without checks.
"""

from __future__ import annotations

import logging
import re

from mailauth.checker.results import DmarcValidationResult, ValidationError

logger = logging.getLogger(__name__)

DMARC_VERSION_MARKER = "v=DMARC1"

# p= must be a tag of its own; "sp=none" does not satisfy it.
_POLICY_RE = re.compile(r"(?:^|;)\s*p\s*=\s*(reject|quarantine|none)\s*(?:;|$)", re.IGNORECASE)


def find_dmarc_records(txt_values: list[str]) -> list[str]:
    """Return the TXT values that look like DMARC records."""
    return [value for value in txt_values if DMARC_VERSION_MARKER in value]


def parse_policy(record: str) -> str | None:
    """Return the lower-cased p= policy of *record*, or None if absent/unknown."""
    match = _POLICY_RE.search(record)
    if match is None:
        return None
    return match.group(1).lower()


def validate_dmarc(txt_values: list[str]) -> DmarcValidationResult:
    """Validate the TXT values published at ``_dmarc.<domain>``.

    Args:
        txt_values: All TXT strings found at the DMARC name.

    Returns:
        A DmarcValidationResult.
    """
    result = DmarcValidationResult(is_valid=False)
    dmarc_records = find_dmarc_records(txt_values)

    if not dmarc_records:
        result.errors.append(ValidationError(type="missingRecord", message="No DMARC record found"))
        return result

    if len(dmarc_records) > 1:
        logger.info("Multiple DMARC records found (%d)", len(dmarc_records))
        result.errors.append(
            ValidationError(type="multipleRecords", message="Multiple DMARC records found")
        )
        return result

    if parse_policy(dmarc_records[0]) is None:
        result.errors.append(
            ValidationError(
                type="invalidSyntax",
                message="DMARC record missing required policy (p=) tag",
            )
        )
        return result

    result.is_valid = True
    return result
