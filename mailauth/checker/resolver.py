"""
F09 - Multi-provider DNS resolver.

Queries the same record against several independent resolvers (Google,
Cloudflare, OpenDNS) and against the domain's own authoritative
nameservers, so that propagation problems and provider disagreement are
visible to the validators.

Every individual query is raced against a timeout.  "Record does not
exist" conditions (NXDOMAIN, NoAnswer, SERVFAIL) degrade to an empty
result; only a timeout on a directly awaited query is raised, and
``query_all_providers`` absorbs even that per provider.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging

import dns.asyncresolver
import dns.exception
import dns.resolver

from mailauth.checker.results import (
    PROVIDER_AUTHORITATIVE,
    PUBLIC_PROVIDERS,
    AuthoritativeInfo,
    ProviderResultBundle,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
SUPPORTED_RECORD_TYPES = ("CNAME", "TXT", "NS", "A")


class DnsQueryError(Exception):
    """Base class for transport-level DNS failures."""


class DnsTimeoutError(DnsQueryError):
    """Raised when a single query exceeds the resolver's timeout."""

    def __init__(self, name: str, record_type: str, timeout: float) -> None:
        super().__init__(f"DNS query timed out for {name}/{record_type} after {timeout}s")
        self.name = name
        self.record_type = record_type
        self.timeout = timeout


def _is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def _rdata_to_text(rdata, record_type: str) -> str:
    """Render one answer rdata the way the validators compare it."""
    if record_type == "TXT":
        # TXT records come as multiple byte strings that need joining
        return b"".join(rdata.strings).decode("utf-8", errors="replace")
    if record_type in ("CNAME", "NS"):
        return rdata.target.to_text(omit_final_dot=True)
    return rdata.to_text()


class DnsResolver:
    """Resolve records against fixed public providers and authoritative servers.

    Args:
        timeout: Per-query timeout in seconds.
        providers: Provider name -> resolver IP.  Defaults to Google,
            Cloudflare and OpenDNS.
        trusted_resolver: Resolver used for NS discovery and nameserver
            address lookups, so the host's own DNS configuration is never
            involved.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        providers: dict[str, str] | None = None,
        trusted_resolver: str = PUBLIC_PROVIDERS["google"],
    ) -> None:
        if timeout <= 0:
            raise ValueError("DNS timeout must be a positive number")
        self.timeout = float(timeout)
        self.providers = dict(providers if providers is not None else PUBLIC_PROVIDERS)
        self.trusted_resolver = trusted_resolver

    def _create_resolver(self, nameserver: str | None) -> dns.asyncresolver.Resolver:
        """Create a fresh async resolver pointed at *nameserver*.

        A new instance is created for every query so concurrent queries
        never share resolver state.  With no nameserver the host
        configuration is used.
        """
        if nameserver is None:
            resolver = dns.asyncresolver.Resolver()
        else:
            resolver = dns.asyncresolver.Resolver(configure=False)
            resolver.nameservers = [nameserver]
        resolver.timeout = self.timeout
        resolver.lifetime = self.timeout
        return resolver

    async def query_with_timeout(
        self,
        name: str,
        record_type: str,
        provider_address: str | None = None,
    ) -> list[str]:
        """Query *name* for *record_type*, racing the query against the timeout.

        Args:
            name: Fully-qualified record name.
            record_type: "CNAME", "TXT", "NS" or "A".
            provider_address: Resolver IP; the host resolver when None.

        Returns:
            The answer values; empty when the name or record does not exist.

        Raises:
            DnsTimeoutError: The query did not finish within the timeout.
        """
        record_type = record_type.upper()
        if record_type not in SUPPORTED_RECORD_TYPES:
            raise ValueError(f"Unsupported record type: {record_type}")

        resolver = self._create_resolver(provider_address)
        target = provider_address or "system"

        try:
            answer = await asyncio.wait_for(
                resolver.resolve(name, record_type),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, dns.exception.Timeout) as exc:
            logger.warning("Timeout for %s/%s via %s", name, record_type, target)
            raise DnsTimeoutError(name, record_type, self.timeout) from exc
        except dns.resolver.NXDOMAIN:
            logger.debug("NXDOMAIN for %s/%s via %s", name, record_type, target)
            return []
        except dns.resolver.NoAnswer:
            logger.debug("NoAnswer for %s/%s via %s", name, record_type, target)
            return []
        except dns.resolver.NoNameservers:
            logger.info("NoNameservers for %s/%s via %s", name, record_type, target)
            return []
        except dns.exception.DNSException as exc:
            logger.info("DNSException for %s/%s via %s: %s", name, record_type, target, exc)
            return []

        records = [_rdata_to_text(rdata, record_type) for rdata in answer]
        logger.debug(
            "DNS query %s/%s via %s returned %d records", name, record_type, target, len(records)
        )
        return records

    async def get_authoritative_nameservers(self, domain: str) -> list[str]:
        """Return the NS hostnames for *domain*, walking up to the parent on failure.

        The walk stops once only two labels remain.
        """
        labels = domain.rstrip(".").split(".")
        while True:
            zone = ".".join(labels)
            try:
                nameservers = await self.query_with_timeout(zone, "NS", self.trusted_resolver)
            except DnsQueryError:
                nameservers = []
            if nameservers:
                logger.debug("Authoritative nameservers for %s: %s", zone, nameservers)
                return nameservers
            if len(labels) <= 2:
                logger.info("No authoritative nameservers found for %s", domain)
                return []
            labels = labels[1:]

    async def resolve_nameserver_address(self, nameserver: str) -> str | None:
        """Resolve a nameserver hostname to an IP via the trusted resolver.

        IP addresses pass through unchanged.  Failure is silent.
        """
        nameserver = nameserver.rstrip(".")
        if _is_ip_address(nameserver):
            return nameserver
        try:
            addresses = await self.query_with_timeout(nameserver, "A", self.trusted_resolver)
        except DnsQueryError:
            addresses = []
        if not addresses:
            logger.info("Could not resolve nameserver address for %s", nameserver)
            return None
        return addresses[0]

    async def query_authoritative(
        self,
        domain: str,
        full_name: str,
        record_type: str,
    ) -> tuple[list[str], AuthoritativeInfo]:
        """Try the domain's authoritative nameservers in order.

        The first server returning a non-empty answer wins.  The candidate
        list is reported whether or not any server answered.
        """
        nameservers = await self.get_authoritative_nameservers(domain)
        info = AuthoritativeInfo(server=None, servers=list(nameservers))

        for nameserver in nameservers:
            address = await self.resolve_nameserver_address(nameserver)
            if address is None:
                continue
            try:
                records = await self.query_with_timeout(full_name, record_type, address)
            except DnsQueryError as exc:
                logger.info("Authoritative server %s failed for %s: %s", nameserver, full_name, exc)
                continue
            if records:
                info.server = nameserver
                return records, info

        return [], info

    async def _query_provider(
        self, provider: str, address: str, full_name: str, record_type: str
    ) -> tuple[str, list[str]]:
        try:
            return provider, await self.query_with_timeout(full_name, record_type, address)
        except DnsQueryError as exc:
            logger.warning("Provider %s failed for %s/%s: %s", provider, full_name, record_type, exc)
            return provider, []

    async def query_all_providers(
        self,
        domain: str,
        record_type: str,
        prefix: str | None = None,
    ) -> ProviderResultBundle:
        """Query every provider for ``prefix.domain`` (or *domain*).

        The public providers and the authoritative path run concurrently.
        A provider that times out or fails contributes an empty list; this
        coroutine never raises for DNS reasons.
        """
        full_name = f"{prefix}.{domain}" if prefix else domain

        provider_tasks = [
            self._query_provider(provider, address, full_name, record_type)
            for provider, address in self.providers.items()
        ]
        authoritative_task = self.query_authoritative(domain, full_name, record_type)

        *provider_results, (auth_records, auth_info) = await asyncio.gather(
            *provider_tasks, authoritative_task
        )

        bundle = ProviderResultBundle(authoritative=auth_info)
        for provider, records in provider_results:
            bundle.set_records(provider, full_name, records)
        bundle.set_records(PROVIDER_AUTHORITATIVE, full_name, auth_records)
        return bundle
