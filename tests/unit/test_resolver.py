"""Unit tests for the DNS resolver wrapper."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import dns.exception
import dns.name
import dns.rdatatype
import dns.resolver
import pytest

from txthook.exceptions import ResolverError
from txthook.resolver import Resolver


def answer(*rdatas, extra_rrsets=()):
    """Build an object shaped like dns.resolver.Answer."""
    rrset = list(rdatas) or None
    rrsets = list(extra_rrsets)
    if rrset is not None:
        rrsets.append(SimpleNamespace(rdtype=dns.rdatatype.SOA))
    return SimpleNamespace(rrset=rrset, response=SimpleNamespace(answer=rrsets))


def txt(*strings: bytes):
    return SimpleNamespace(strings=strings)


def scripted(responses: dict):
    """side_effect serving responses keyed by (qname, rdtype)."""

    def resolve(qname, rdtype, raise_on_no_answer=True):
        result = responses.get((qname, rdtype), dns.resolver.NXDOMAIN())
        if isinstance(result, Exception):
            raise result
        return result

    return resolve


@pytest.fixture
def system() -> MagicMock:
    return MagicMock(spec=dns.resolver.Resolver)


class TestQueryTxt:
    """Tests for Resolver.query_txt()."""

    def test_returns_joined_strings(self, system):
        """Multi-string TXT records are joined; one entry per record."""
        system.resolve.return_value = answer(txt(b"dead", b"beef"), txt(b"other"))
        resolver = Resolver(resolver=system)

        assert resolver.query_txt("_acme-challenge.example.com") == ["deadbeef", "other"]
        system.resolve.assert_called_once_with("_acme-challenge.example.com.", "TXT", raise_on_no_answer=False)

    def test_no_answer_is_empty(self, system):
        """A name without TXT records gives an empty list."""
        system.resolve.return_value = answer()
        resolver = Resolver(resolver=system)

        assert resolver.query_txt("_acme-challenge.example.com") == []

    def test_nxdomain_is_empty(self, system):
        """A missing name gives an empty list."""
        system.resolve.side_effect = dns.resolver.NXDOMAIN()
        resolver = Resolver(resolver=system)

        assert resolver.query_txt("_acme-challenge.example.com") == []

    def test_timeout_raises(self, system):
        """Transport failures raise ResolverError."""
        system.resolve.side_effect = dns.exception.Timeout()
        resolver = Resolver(resolver=system)

        with pytest.raises(ResolverError, match="TXT query"):
            resolver.query_txt("_acme-challenge.example.com")

    def test_server_specific_query(self, system):
        """Queries for a given server use a resolver bound to it."""
        bound = MagicMock()
        bound.resolve.return_value = answer(txt(b"deadbeef"))
        resolver = Resolver(resolver=system)

        with patch.object(Resolver, "_resolver_for", return_value=bound) as resolver_for:
            assert resolver.query_txt("_acme-challenge.example.com", "192.0.2.1") == ["deadbeef"]

        resolver_for.assert_called_once_with("192.0.2.1")
        system.resolve.assert_not_called()

    def test_resolver_for_server(self, system):
        """A bound resolver only talks to the given server."""
        resolver = Resolver(timeout=3, resolver=system)

        bound = resolver._resolver_for("192.0.2.1")

        assert bound is not system
        assert bound.lifetime == 3
        assert resolver._resolver_for(None) is system


class TestNameservers:
    """Tests for Resolver.nameservers()."""

    def test_addresses_in_ns_order(self, system):
        """Addresses follow the NS answer order, without duplicates."""
        system.resolve.side_effect = scripted(
            {
                ("example.com.", "NS"): answer(
                    SimpleNamespace(target=dns.name.from_text("ns2.example.net.")),
                    SimpleNamespace(target=dns.name.from_text("ns1.example.net.")),
                ),
                ("ns2.example.net.", "A"): answer(SimpleNamespace(address="192.0.2.2")),
                ("ns1.example.net.", "A"): answer(
                    SimpleNamespace(address="192.0.2.1"), SimpleNamespace(address="192.0.2.2")
                ),
            }
        )
        resolver = Resolver(resolver=system)

        assert resolver.nameservers("example.com") == ["192.0.2.2", "192.0.2.1"]

    def test_no_ns_records(self, system):
        """A zone without NS records gives an empty list."""
        system.resolve.side_effect = scripted({("example.com.", "NS"): answer()})
        resolver = Resolver(resolver=system)

        assert resolver.nameservers("example.com") == []

    def test_ns_lookup_failure_raises(self, system):
        """Failure to fetch NS raises ResolverError."""
        system.resolve.side_effect = dns.resolver.NoNameservers()
        resolver = Resolver(resolver=system)

        with pytest.raises(ResolverError, match="NS query"):
            resolver.nameservers("example.com")

    def test_address_literal_passthrough(self, system):
        """IP literals are not resolved."""
        resolver = Resolver(resolver=system)

        assert resolver.addresses("192.0.2.53") == ["192.0.2.53"]
        system.resolve.assert_not_called()


class TestFindApex:
    """Tests for Resolver.find_apex()."""

    def test_walks_up_to_first_soa(self, system):
        """Labels are stripped until a suffix answers SOA."""
        system.resolve.side_effect = scripted(
            {
                ("www.example.com.", "SOA"): answer(),
                ("example.com.", "SOA"): answer(SimpleNamespace()),
            }
        )
        resolver = Resolver(resolver=system)

        assert resolver.find_apex("_acme-challenge.www.example.com") == "example.com"
        queried = [c.args[0] for c in system.resolve.call_args_list]
        assert queried == ["_acme-challenge.www.example.com.", "www.example.com.", "example.com."]

    def test_skips_cname_answers(self, system):
        """An SOA reached through a CNAME does not make the name an apex."""
        system.resolve.side_effect = scripted(
            {
                ("alias.example.com.", "SOA"): answer(
                    SimpleNamespace(), extra_rrsets=[SimpleNamespace(rdtype=dns.rdatatype.CNAME)]
                ),
                ("example.com.", "SOA"): answer(SimpleNamespace()),
            }
        )
        resolver = Resolver(resolver=system)

        assert resolver.find_apex("alias.example.com") == "example.com"

    def test_delegated_subzone(self, system):
        """A delegated child zone is its own apex."""
        system.resolve.side_effect = scripted(
            {("sub.example.com.", "SOA"): answer(SimpleNamespace())}
        )
        resolver = Resolver(resolver=system)

        assert resolver.find_apex("_acme-challenge.sub.example.com.") == "sub.example.com"

    def test_no_zone_raises(self, system):
        """Nothing answering SOA raises ResolverError."""
        system.resolve.side_effect = scripted({})
        resolver = Resolver(resolver=system)

        with pytest.raises(ResolverError, match="No zone found"):
            resolver.find_apex("nothing.invalid")

    def test_transport_failure_raises(self, system):
        """Timeouts abort the walk."""
        system.resolve.side_effect = dns.exception.Timeout()
        resolver = Resolver(resolver=system)

        with pytest.raises(ResolverError, match="SOA query"):
            resolver.find_apex("example.com")
