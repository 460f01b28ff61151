"""DNS resolution with a cache-bypassing fallback path.

[lookup_ips()][hostprobe.utils.dns.lookup_ips] first asks the system
resolver (``socket.getaddrinfo`` delegated to a thread with
``asyncio.to_thread``). When that fails it queries a fixed upstream server
directly over UDP with ``dnspython``, bypassing every local cache, so a
host whose records were just published can be diagnosed without waiting
for TTLs to expire.

The direct path queries A, AAAA and CNAME at each name and follows CNAME
targets recursively, bounded by ``max_depth``; a deeper (or cyclic) chain
is a [DnsError][hostprobe.core.exceptions.DnsError]. Addresses found
through several CNAME branches are not deduplicated, so duplicate records
stay visible in the report.

Note:
    [HostNotFoundError][hostprobe.core.exceptions.HostNotFoundError]
    (nothing to resolve) is distinct from
    [DnsError][hostprobe.core.exceptions.DnsError] (resolver unreachable
    or misbehaving) because the report gives different advice for each.

Examples:
    ```python
    ips = await lookup_ips("host.example.com")
    ips = await lookup_ips("203.0.113.7")       # returned as-is, no I/O
    ```
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket

import dns.asyncquery
import dns.exception
import dns.message
import dns.name
import dns.rdatatype

from hostprobe.core.exceptions import DnsError, FormatError, HostNotFoundError
from hostprobe.models.host import split_host_port


DEFAULT_FALLBACK_SERVER = "1.1.1.1:53"
DEFAULT_QUERY_TIMEOUT = 5.0
DEFAULT_MAX_DEPTH = 3

logger = logging.getLogger("hostprobe.utils.dns")


def _parse_ip(text: str) -> str | None:
    try:
        return str(ipaddress.ip_address(text))
    except ValueError:
        return None


def _parse_server(server: str) -> tuple[str, int]:
    try:
        host, port = split_host_port(server)
        return host, int(port)
    except (FormatError, ValueError) as e:
        raise DnsError(f"invalid DNS server address {server!r}") from e


async def _query_record(server: str, hostname: str, record_type: str, timeout: float) -> list[str]:  # noqa: ASYNC109
    """Send one UDP query and return the answer section as text.

    A and AAAA answers become IP literals, CNAME answers their target name.
    A CNAME rrset returned alongside an A/AAAA answer is included as its
    target and filtered out by the caller.

    Raises:
        DnsError: On an invalid name, a timeout, a network failure, or an
            unsupported record type in the answer.
    """
    host, port = _parse_server(server)
    try:
        query = dns.message.make_query(dns.name.from_text(hostname), record_type)
        response = await dns.asyncquery.udp(query, host, timeout=timeout, port=port)
    except (OSError, dns.exception.DNSException) as e:
        raise DnsError(f"query {record_type} {hostname}: {e or type(e).__name__}") from e

    results: list[str] = []
    for rrset in response.answer:
        for rdata in rrset:
            if rrset.rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA):
                results.append(rdata.address)
            elif rrset.rdtype == dns.rdatatype.CNAME:
                results.append(rdata.target.to_text())
            else:
                raise DnsError(
                    f"unsupported record type: {dns.rdatatype.to_text(rrset.rdtype)}"
                )
    return results


async def _resolve(
    server: str,
    hostname: str,
    depth: int,
    max_depth: int,
    timeout: float,  # noqa: ASYNC109
) -> list[str]:
    if depth > max_depth:
        raise DnsError(f"maximum CNAME resolution depth reached: {max_depth}")

    records: list[str] = []
    for record_type in ("A", "AAAA"):
        try:
            answers = await _query_record(server, hostname, record_type, timeout)
        except DnsError as e:
            raise DnsError(f"failed to query {record_type} records: {e}") from e
        records.extend(ip for ip in map(_parse_ip, answers) if ip is not None)

    try:
        targets = await _query_record(server, hostname, "CNAME", timeout)
    except DnsError as e:
        raise DnsError(f"failed to query CNAME records: {e}") from e
    for target in targets:
        try:
            records.extend(await _resolve(server, target, depth + 1, max_depth, timeout))
        except DnsError as e:
            raise DnsError(f'failed to resolve CNAME "{target}": {e}') from e
    return records


async def query_records(
    server: str,
    hostname: str,
    record_type: str,
    *,
    timeout: float = DEFAULT_QUERY_TIMEOUT,  # noqa: ASYNC109
) -> list[str]:
    """Query *server* directly for one record type of *hostname*.

    Raises:
        HostNotFoundError: If the answer section is empty.
        DnsError: If the query fails.
    """
    records = await _query_record(server, hostname, record_type, timeout)
    if not records:
        raise HostNotFoundError(f"no {record_type} records for {hostname}")
    return records


async def resolve_direct(
    hostname: str,
    server: str = DEFAULT_FALLBACK_SERVER,
    *,
    timeout: float = DEFAULT_QUERY_TIMEOUT,  # noqa: ASYNC109
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[str]:
    """Resolve *hostname* against *server* only, following CNAMEs.

    Raises:
        HostNotFoundError: If no A/AAAA records were found on any branch.
        DnsError: If a query fails or the CNAME chain exceeds *max_depth*.
    """
    if (ip := _parse_ip(hostname)) is not None:
        return [ip]
    records = await _resolve(server, hostname, 0, max_depth, timeout)
    if not records:
        raise HostNotFoundError("no such host")
    return records


async def _system_lookup(hostname: str, timeout: float) -> list[str]:  # noqa: ASYNC109
    infos = await asyncio.wait_for(
        asyncio.to_thread(socket.getaddrinfo, hostname, None, type=socket.SOCK_STREAM),
        timeout=timeout,
    )
    return list(dict.fromkeys(str(info[4][0]) for info in infos))


async def lookup_ips(
    hostname: str,
    *,
    fallback_server: str = DEFAULT_FALLBACK_SERVER,
    timeout: float = DEFAULT_QUERY_TIMEOUT,  # noqa: ASYNC109
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[str]:
    """Resolve *hostname* to IP literals, falling back to a direct query.

    Args:
        hostname: Name (or IP literal) to resolve.
        fallback_server: ``host:port`` of the upstream queried when the
            system resolver fails.
        timeout: Seconds allowed for the system lookup and for each direct
            query.
        max_depth: Maximum CNAME recursion depth on the direct path.

    Raises:
        HostNotFoundError: If no path produced an address.
        DnsError: If the direct path failed.
    """
    if (ip := _parse_ip(hostname)) is not None:
        return [ip]

    try:
        ips = await _system_lookup(hostname, timeout)
    except (OSError, UnicodeError, TimeoutError) as e:
        logger.debug("system_resolver_failed host=%s error=%s", hostname, e)
    else:
        if ips:
            return ips

    return await resolve_direct(hostname, fallback_server, timeout=timeout, max_depth=max_depth)
