"""
F13 - Cross-provider consistency analysis.

Compares what each DNS provider returned for every record name.  A record
that some providers see and others do not is the typical signature of a
change that has not finished propagating.
"""

from __future__ import annotations

import json

from mailauth.checker.results import ConsistencyResult, ProviderResultBundle

DMARC_LABEL = "_dmarc."


def _serialize(name: str, values: list[str]) -> str:
    # Providers may return multi-value TXT answers in any order.
    if name.startswith(DMARC_LABEL):
        values = sorted(values)
    return json.dumps(values)


def check_consistency(bundle: ProviderResultBundle) -> ConsistencyResult:
    """Check whether all providers agree on every record.

    A provider that has no entry for a name counts as an empty answer.
    Records nobody returned are ignored; for any other record, every
    provider must have returned the same values.

    Args:
        bundle: Raw per-provider results (not the consolidated view).

    Returns:
        A ConsistencyResult.
    """
    consistent = True
    has_successful_results = False

    for name in bundle.record_names():
        per_provider = [record_set.get(name) or [] for record_set in bundle.records.values()]
        if not any(per_provider):
            continue

        has_successful_results = True
        if len({_serialize(name, values) for values in per_provider}) > 1:
            consistent = False

    return ConsistencyResult(consistent=consistent, has_successful_results=has_successful_results)
