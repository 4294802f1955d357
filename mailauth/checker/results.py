"""
F05 - Result types shared by the resolver, validators and engine.

Every check produces plain dataclasses; ``to_dict()`` renders the
camelCase JSON shape the front end consumes.  Validation findings are
ordinary values, never exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Providers and expected DKIM targets
# ---------------------------------------------------------------------------

PROVIDER_GOOGLE = "google"
PROVIDER_CLOUDFLARE = "cloudflare"
PROVIDER_OPENDNS = "openDNS"
PROVIDER_AUTHORITATIVE = "authoritative"

# Fixed public resolvers, queried concurrently for every record.
PUBLIC_PROVIDERS: dict[str, str] = {
    PROVIDER_GOOGLE: "8.8.8.8",
    PROVIDER_CLOUDFLARE: "1.1.1.1",
    PROVIDER_OPENDNS: "208.67.222.222",
}

ALL_PROVIDERS: tuple[str, ...] = (*PUBLIC_PROVIDERS, PROVIDER_AUTHORITATIVE)

DKIM_K1_TARGET = "dkim.mcsv.net"
DKIM_K2_TARGET = "dkim2.mcsv.net"
DKIM_K3_TARGET = "dkim3.mcsv.net"
KNOWN_DKIM_TARGETS: frozenset[str] = frozenset({DKIM_K1_TARGET, DKIM_K2_TARGET, DKIM_K3_TARGET})

DKIM_SELECTORS: tuple[str, ...] = ("k1", "k2", "k3")

# Record name -> values (CNAME targets or joined TXT strings)
RecordSet = dict[str, list[str]]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationError:
    """A typed diagnosis.

    ``actual`` and ``expected`` are record names and are only set for
    findings with a concrete "looks like / should look like" substitution.
    """

    type: str
    message: str
    actual: str | None = None
    expected: str | None = None

    def to_dict(self) -> dict[str, str]:
        data = {"type": self.type, "message": self.message}
        if self.actual is not None:
            data["actual"] = self.actual
        if self.expected is not None:
            data["expected"] = self.expected
        return data


@dataclass
class ValidationResult:
    is_valid: bool = False
    errors: list[ValidationError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [error.to_dict() for error in self.errors],
        }


@dataclass
class DmarcValidationResult(ValidationResult):
    """DMARC outcome, optionally satisfied by the organisational domain."""

    using_root_domain: str | None = None
    root_dmarc_records: list[str] | None = None
    original_domain: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.using_root_domain is not None:
            data["usingRootDomain"] = self.using_root_domain
            data["rootDmarcRecords"] = list(self.root_dmarc_records or [])
            data["originalDomain"] = self.original_domain
        return data


@dataclass(frozen=True)
class ConsistencyResult:
    consistent: bool = True
    has_successful_results: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "consistent": self.consistent,
            "hasSuccessfulResults": self.has_successful_results,
        }


@dataclass
class ValidationSummary:
    """Overall verdict for one check run."""

    dkim: ValidationResult
    dmarc: DmarcValidationResult
    consistency: ConsistencyResult

    @property
    def is_valid(self) -> bool:
        return self.dkim.is_valid and self.dmarc.is_valid and self.consistency.consistent

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "dkim": self.dkim.to_dict(),
            "dmarc": self.dmarc.to_dict(),
            "consistency": self.consistency.to_dict(),
        }


# ---------------------------------------------------------------------------
# Resolver output
# ---------------------------------------------------------------------------


@dataclass
class AuthoritativeInfo:
    """Which authoritative nameserver answered, and which were tried."""

    server: str | None = None
    servers: list[str] = field(default_factory=list)


@dataclass
class ProviderResultBundle:
    """Per-provider record sets for one or more query rounds."""

    records: dict[str, RecordSet] = field(default_factory=dict)
    authoritative: AuthoritativeInfo = field(default_factory=AuthoritativeInfo)

    @classmethod
    def empty(cls) -> ProviderResultBundle:
        return cls(records={provider: {} for provider in ALL_PROVIDERS})

    def set_records(self, provider: str, name: str, values: list[str]) -> None:
        self.records.setdefault(provider, {})[name] = list(values)

    def record_names(self) -> list[str]:
        """Union of record names across providers, in first-seen order."""
        names: dict[str, None] = {}
        for record_set in self.records.values():
            for name in record_set:
                names.setdefault(name, None)
        return list(names)

    def merge(self, other: ProviderResultBundle) -> ProviderResultBundle:
        """Return a new bundle combining both rounds.

        Record maps are merged per provider.  Authoritative metadata keeps
        the first answering server and the union of candidate servers.
        """
        merged = ProviderResultBundle(
            records={provider: dict(values) for provider, values in self.records.items()},
            authoritative=AuthoritativeInfo(
                server=self.authoritative.server,
                servers=list(self.authoritative.servers),
            ),
        )
        for provider, record_set in other.records.items():
            merged.records.setdefault(provider, {}).update(
                {name: list(values) for name, values in record_set.items()}
            )
        if merged.authoritative.server is None:
            merged.authoritative.server = other.authoritative.server
        for server in other.authoritative.servers:
            if server not in merged.authoritative.servers:
                merged.authoritative.servers.append(server)
        return merged

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            provider: {name: list(values) for name, values in record_set.items()}
            for provider, record_set in self.records.items()
        }
        authoritative = data.setdefault(PROVIDER_AUTHORITATIVE, {})
        authoritative["authoritativeServer"] = self.authoritative.server
        authoritative["authoritativeServers"] = list(self.authoritative.servers)
        return data
