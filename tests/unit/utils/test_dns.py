"""
Unit tests for utils.dns module.

Tests:
- lookup_ips() short-circuit for IP literals
- System resolver first, direct fallback second
- resolve_direct() CNAME recursion and depth bound
- HostNotFoundError vs DnsError
- Wire answers parsed from real dnspython messages
"""

from unittest.mock import AsyncMock, patch

import dns.exception
import dns.message
import dns.rdatatype
import dns.rrset
import pytest

from hostprobe.core.exceptions import DnsError, HostNotFoundError
from hostprobe.utils.dns import lookup_ips, query_records, resolve_direct


def _records(table: dict[tuple[str, str], list[str]]) -> AsyncMock:
    """Fake ``_query_record`` answering from ``{(hostname, type): answers}``."""

    async def query(server: str, hostname: str, record_type: str, timeout: float) -> list[str]:
        return list(table.get((hostname, record_type), []))

    return AsyncMock(side_effect=query)


# ============================================================================
# lookup_ips() Tests
# ============================================================================


class TestLookupIps:
    """Tests for lookup_ips()."""

    @pytest.mark.parametrize("literal", ["203.0.113.7", "2001:db8::1"])
    async def test_ip_literal_needs_no_query(self, literal: str) -> None:
        with (
            patch("hostprobe.utils.dns._system_lookup", new_callable=AsyncMock) as system,
            patch("hostprobe.utils.dns._query_record", new_callable=AsyncMock) as direct,
        ):
            assert await lookup_ips(literal) == [literal]
        system.assert_not_called()
        direct.assert_not_called()

    async def test_system_resolver_success(self) -> None:
        with (
            patch(
                "hostprobe.utils.dns._system_lookup",
                new_callable=AsyncMock,
                return_value=["203.0.113.7"],
            ),
            patch("hostprobe.utils.dns._query_record", new_callable=AsyncMock) as direct,
        ):
            assert await lookup_ips("host.example") == ["203.0.113.7"]
        direct.assert_not_called()

    async def test_falls_back_to_direct_query(self) -> None:
        fake = _records({("host.example", "A"): ["198.51.100.4"]})
        with (
            patch(
                "hostprobe.utils.dns._system_lookup",
                new_callable=AsyncMock,
                side_effect=OSError("no servers"),
            ),
            patch("hostprobe.utils.dns._query_record", fake),
        ):
            result = await lookup_ips("host.example", fallback_server="9.9.9.9:53")
        assert result == ["198.51.100.4"]
        assert fake.await_args_list[0].args[0] == "9.9.9.9:53"

    async def test_empty_system_answer_falls_back(self) -> None:
        fake = _records({("host.example", "AAAA"): ["2001:db8::5"]})
        with (
            patch("hostprobe.utils.dns._system_lookup", new_callable=AsyncMock, return_value=[]),
            patch("hostprobe.utils.dns._query_record", fake),
        ):
            assert await lookup_ips("host.example") == ["2001:db8::5"]

    async def test_not_found_everywhere(self) -> None:
        with (
            patch(
                "hostprobe.utils.dns._system_lookup",
                new_callable=AsyncMock,
                side_effect=OSError("nxdomain"),
            ),
            patch("hostprobe.utils.dns._query_record", _records({})),
            pytest.raises(HostNotFoundError),
        ):
            await lookup_ips("missing.example")


# ============================================================================
# resolve_direct() Tests
# ============================================================================


class TestResolveDirect:
    """Tests for resolve_direct()."""

    async def test_a_and_aaaa(self) -> None:
        fake = _records(
            {
                ("host.example", "A"): ["203.0.113.7"],
                ("host.example", "AAAA"): ["2001:db8::7"],
            }
        )
        with patch("hostprobe.utils.dns._query_record", fake):
            assert await resolve_direct("host.example") == ["203.0.113.7", "2001:db8::7"]

    async def test_follows_cname(self) -> None:
        fake = _records(
            {
                ("www.example", "A"): ["edge.example."],
                ("www.example", "CNAME"): ["edge.example."],
                ("edge.example.", "A"): ["203.0.113.9"],
            }
        )
        with patch("hostprobe.utils.dns._query_record", fake):
            assert await resolve_direct("www.example") == ["203.0.113.9"]

    async def test_cname_duplicates_are_kept(self) -> None:
        fake = _records(
            {
                ("www.example", "A"): ["203.0.113.9"],
                ("www.example", "CNAME"): ["edge.example."],
                ("edge.example.", "A"): ["203.0.113.9"],
            }
        )
        with patch("hostprobe.utils.dns._query_record", fake):
            assert await resolve_direct("www.example") == ["203.0.113.9", "203.0.113.9"]

    async def test_cyclic_cname_is_bounded(self) -> None:
        fake = _records({("loop.example", "CNAME"): ["loop.example"]})
        with (
            patch("hostprobe.utils.dns._query_record", fake),
            pytest.raises(DnsError, match="maximum CNAME resolution depth reached: 3"),
        ):
            await resolve_direct("loop.example", max_depth=3)
        # A, AAAA and CNAME at depths 0 through 3
        assert fake.await_count == 12

    async def test_no_records(self) -> None:
        with (
            patch("hostprobe.utils.dns._query_record", _records({})),
            pytest.raises(HostNotFoundError, match="no such host"),
        ):
            await resolve_direct("missing.example")

    async def test_query_failure(self) -> None:
        with (
            patch(
                "hostprobe.utils.dns._query_record",
                new_callable=AsyncMock,
                side_effect=DnsError("timeout"),
            ),
            pytest.raises(DnsError, match="failed to query A records: timeout"),
        ):
            await resolve_direct("host.example")

    async def test_invalid_server(self) -> None:
        with pytest.raises(DnsError, match="invalid DNS server address"):
            await resolve_direct("host.example", server="not-a-server")


class TestQueryRecords:
    """Tests for query_records()."""

    async def test_returns_answers(self) -> None:
        fake = _records({("host.example", "A"): ["203.0.113.7"]})
        with patch("hostprobe.utils.dns._query_record", fake):
            assert await query_records("1.1.1.1:53", "host.example", "A") == ["203.0.113.7"]

    async def test_empty_answer(self) -> None:
        with (
            patch("hostprobe.utils.dns._query_record", _records({})),
            pytest.raises(HostNotFoundError, match="no A records for host.example"),
        ):
            await query_records("1.1.1.1:53", "host.example", "A")


# ============================================================================
# Wire Answer Tests
# ============================================================================


def _udp(table: dict[tuple[str, str], list[tuple[str, str, str]]]) -> AsyncMock:
    """Fake ``dns.asyncquery.udp`` answering with real response messages.

    *table* maps ``(qname, qtype)`` to ``(owner, rdtype, rdata)`` answer
    records; unknown questions get an empty answer section.
    """

    async def udp(query: dns.message.Message, where: str, **kwargs: object) -> dns.message.Message:
        question = query.question[0]
        key = (question.name.to_text(), dns.rdatatype.to_text(question.rdtype))
        response = dns.message.make_response(query)
        for owner, rdtype, rdata in table.get(key, []):
            response.answer.append(dns.rrset.from_text(owner, 300, "IN", rdtype, rdata))
        return response

    return AsyncMock(side_effect=udp)


class TestWireAnswers:
    """Direct queries parsed from dnspython response messages."""

    async def test_a_answer(self) -> None:
        udp = _udp({("host.example.", "A"): [("host.example.", "A", "203.0.113.7")]})
        with patch("dns.asyncquery.udp", udp):
            assert await query_records("9.9.9.9:5353", "host.example", "A") == ["203.0.113.7"]
        assert udp.await_args.args[1] == "9.9.9.9"
        assert udp.await_args.kwargs["port"] == 5353

    async def test_aaaa_answer(self) -> None:
        udp = _udp({("host.example.", "AAAA"): [("host.example.", "AAAA", "2001:db8::7")]})
        with patch("dns.asyncquery.udp", udp):
            assert await query_records("1.1.1.1:53", "host.example", "AAAA") == ["2001:db8::7"]

    async def test_cname_with_a_answer(self) -> None:
        udp = _udp(
            {
                ("www.example.", "A"): [
                    ("www.example.", "CNAME", "edge.example."),
                    ("edge.example.", "A", "203.0.113.9"),
                ],
                ("www.example.", "CNAME"): [("www.example.", "CNAME", "edge.example.")],
                ("edge.example.", "A"): [("edge.example.", "A", "203.0.113.9")],
            }
        )
        with patch("dns.asyncquery.udp", udp):
            assert await query_records("1.1.1.1:53", "www.example", "A") == [
                "edge.example.",
                "203.0.113.9",
            ]
            # The CNAME target is dropped from the addresses; the chain is
            # followed and both branches report the address.
            assert await resolve_direct("www.example") == ["203.0.113.9", "203.0.113.9"]

    async def test_unsupported_record_type(self) -> None:
        udp = _udp({("host.example.", "TXT"): [("host.example.", "TXT", '"v=1"')]})
        with (
            patch("dns.asyncquery.udp", udp),
            pytest.raises(DnsError, match="unsupported record type: TXT"),
        ):
            await query_records("1.1.1.1:53", "host.example", "TXT")

    async def test_timeout_becomes_dns_error(self) -> None:
        udp = AsyncMock(side_effect=dns.exception.Timeout())
        with (
            patch("dns.asyncquery.udp", udp),
            pytest.raises(DnsError, match="failed to query A records: query A host.example"),
        ):
            await resolve_direct("host.example")

    async def test_network_error_becomes_dns_error(self) -> None:
        udp = AsyncMock(side_effect=OSError("network unreachable"))
        with (
            patch("dns.asyncquery.udp", udp),
            pytest.raises(DnsError, match="network unreachable"),
        ):
            await query_records("1.1.1.1:53", "host.example", "A")

    @pytest.mark.parametrize("hostname", ["a..b.example", "a" * 64 + ".example.com"])
    async def test_invalid_name_becomes_dns_error(self, hostname: str) -> None:
        udp = AsyncMock()
        with (
            patch("hostprobe.utils.dns._system_lookup", new_callable=AsyncMock, side_effect=OSError),
            patch("dns.asyncquery.udp", udp),
            pytest.raises(DnsError, match="failed to query A records"),
        ):
            await lookup_ips(hostname)
        udp.assert_not_called()
