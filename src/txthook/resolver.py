"""DNS lookups against recursive and authoritative servers."""

import ipaddress

import dns.exception
import dns.rdatatype
import dns.resolver

from txthook._logging import get_logger
from txthook.exceptions import ResolverError

logger = get_logger(__name__)


def _absolute(name: str) -> str:
    return name.rstrip(".") + "."


class Resolver:
    """Resolver used to find zones, nameservers and published TXT values.

    Zone and nameserver discovery go through the system resolver.
    TXT queries can be pointed at a single server, which is how
    authoritative nameservers are polled for propagation.

    Args:
        timeout: Lifetime of a single query in seconds.
        resolver: Recursive resolver to use (default: system configuration).
    """

    def __init__(self, timeout: float = 5.0, resolver: dns.resolver.Resolver | None = None):
        self.timeout = timeout
        self._resolver = resolver if resolver is not None else dns.resolver.Resolver()
        self._resolver.lifetime = timeout

    def _resolver_for(self, server: str | None) -> dns.resolver.Resolver:
        """Return a resolver that sends queries to `server` only."""
        if server is None:
            return self._resolver
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = [server]
        resolver.lifetime = self.timeout
        return resolver

    def query_txt(self, name: str, server: str | None = None) -> list[str]:
        """Query the TXT strings published at a name.

        Args:
            name: Record name.
            server: Address of the server to ask, or None for the system resolver.

        Returns:
            One string per TXT record (multi-string records joined).
            Empty when the name does not exist or has no TXT records.

        Raises:
            ResolverError: If the server could not be queried.
        """
        try:
            answer = self._resolver_for(server).resolve(
                _absolute(name), "TXT", raise_on_no_answer=False
            )
        except dns.resolver.NXDOMAIN:
            return []
        except dns.exception.DNSException as e:
            raise ResolverError(f"TXT query for {name} via {server or 'system resolver'} failed: {e}") from e

        if answer.rrset is None:
            return []
        return [b"".join(rdata.strings).decode(errors="replace") for rdata in answer.rrset]

    def nameservers(self, zone: str) -> list[str]:
        """Look up the IPv4 addresses of a zone's authoritative nameservers.

        Addresses keep the order of the NS answer; duplicates are dropped.

        Args:
            zone: Zone apex.

        Returns:
            Nameserver addresses, possibly empty.

        Raises:
            ResolverError: If the NS set or a nameserver address cannot be resolved.
        """
        try:
            answer = self._resolver.resolve(_absolute(zone), "NS", raise_on_no_answer=False)
        except dns.exception.DNSException as e:
            raise ResolverError(f"NS query for {zone} failed: {e}") from e

        hosts = [rdata.target.to_text() for rdata in answer.rrset or []]
        addresses: list[str] = []
        for host in hosts:
            host_addresses = self.addresses(host)
            if not host_addresses:
                logger.warning("Nameserver has no IPv4 address", extra={"zone": zone, "nameserver": host})
            for address in host_addresses:
                if address not in addresses:
                    addresses.append(address)

        logger.debug("Resolved nameservers", extra={"zone": zone, "nameservers": addresses})
        return addresses

    def addresses(self, host: str) -> list[str]:
        """Resolve a host name to its IPv4 addresses.

        IP address literals are returned unchanged.

        Raises:
            ResolverError: If the lookup fails.
        """
        try:
            ipaddress.ip_address(host)
        except ValueError:
            pass
        else:
            return [host]

        try:
            answer = self._resolver.resolve(_absolute(host), "A", raise_on_no_answer=False)
        except dns.exception.DNSException as e:
            raise ResolverError(f"Address lookup for {host} failed: {e}") from e
        return [rdata.address for rdata in answer.rrset or []]

    def find_apex(self, name: str) -> str:
        """Find the zone apex a name belongs to.

        Walks the label sequence from the full name towards the root and
        returns the first suffix that answers SOA without a CNAME in the
        answer section.

        Args:
            name: Fully-qualified name.

        Returns:
            The zone apex, without trailing dot.

        Raises:
            ResolverError: If no suffix answers SOA.
        """
        labels = name.rstrip(".").split(".")
        for i in range(len(labels)):
            candidate = ".".join(labels[i:])
            try:
                answer = self._resolver.resolve(_absolute(candidate), "SOA", raise_on_no_answer=False)
            except (dns.resolver.NXDOMAIN, dns.resolver.YXDOMAIN):
                continue
            except dns.exception.DNSException as e:
                raise ResolverError(f"SOA query for {candidate} failed: {e}") from e

            if answer.rrset is None:
                continue
            if any(rrset.rdtype == dns.rdatatype.CNAME for rrset in answer.response.answer):
                continue

            logger.debug("Zone found", extra={"record_name": name, "zone": candidate})
            return candidate

        raise ResolverError(f"No zone found for {name}")
