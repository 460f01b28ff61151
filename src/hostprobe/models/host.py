"""Host descriptor submitted for a troubleshooting run.

A [Host][hostprobe.models.host.Host] is immutable input: the host's public
key, its legacy RHP2 address (if any), and the ordered list of RHP4
endpoints, each tagged with a transport protocol. Multiple endpoints may
target the same machine over different transports.

Note:
    Duplicate protocol tags and unknown protocol tags are accepted here and
    reported per probe by the manager, so one bad entry never hides the
    results for the others.

See Also:
    [TroubleshootManager][hostprobe.services.troubleshoot.TroubleshootManager]:
        Consumes hosts and fans out one probe per endpoint.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from typing import Any

from hostprobe.core.exceptions import FormatError

from ._validation import validate_instance, validate_str_no_null


KEY_PREFIX = "ed25519:"
KEY_SIZE = 32

_HEX_DIGITS = frozenset(string.hexdigits)


def split_host_port(address: str) -> tuple[str, str]:
    """Split ``host:port`` or ``[ipv6]:port`` into host and port.

    Raises:
        FormatError: If the port is missing or an IPv6 host is unbracketed.
    """
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise FormatError(f"address {address}: missing ']' in address")
        host, rest = address[1:end], address[end + 1 :]
        if not rest.startswith(":"):
            raise FormatError(f"address {address}: missing port in address")
        port = rest[1:]
    else:
        host, sep, port = address.rpartition(":")
        if not sep:
            raise FormatError(f"address {address}: missing port in address")
        if ":" in host:
            raise FormatError(f"address {address}: too many colons in address")
    if "[" in port or "]" in port or ":" in port:
        raise FormatError(f"address {address}: invalid port")
    return host, port


def join_host_port(host: str, port: str) -> str:
    """Inverse of [split_host_port()][hostprobe.models.host.split_host_port]."""
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


def normalize_public_key(text: str) -> str:
    """Return the canonical ``ed25519:<hex>`` form of a host key.

    Bare 64-character hex strings are accepted and prefixed.

    Raises:
        FormatError: If the key is not 32 bytes of hex, or carries a
            prefix other than ``ed25519:``.
    """
    validate_str_no_null(text, "public_key")
    key = text.strip()
    if not key:
        raise FormatError("empty public key")
    if ":" in key:
        prefix, _, key = key.partition(":")
        if f"{prefix}:" != KEY_PREFIX:
            raise FormatError(f"unsupported public key type {prefix!r}")
    if len(key) != KEY_SIZE * 2 or not _HEX_DIGITS.issuperset(key):
        raise FormatError(f"invalid public key {text!r}: expected {KEY_SIZE} hex-encoded bytes")
    return KEY_PREFIX + key.lower()


@dataclass(frozen=True, slots=True)
class NetAddress:
    """An RHP4 endpoint: ``host:port`` plus the transport protocol tag.

    Attributes:
        address: ``host:port`` string (IPv6 hosts in brackets).
        protocol: Transport tag, normally one of
            [Protocol][hostprobe.models.constants.Protocol].
    """

    address: str
    protocol: str

    def __post_init__(self) -> None:
        validate_str_no_null(self.address, "address")
        validate_str_no_null(self.protocol, "protocol")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NetAddress:
        """Build from ``{"address": ..., "protocol": ...}``."""
        return cls(address=str(data.get("address", "")), protocol=str(data.get("protocol", "")))

    def to_dict(self) -> dict[str, str]:
        return {"address": self.address, "protocol": self.protocol}


@dataclass(frozen=True, slots=True)
class Host:
    """A storage host under test.

    Attributes:
        public_key: Canonical ``ed25519:<hex>`` host key.
        rhp2_net_address: Legacy RHP2 ``host:port``; empty when the host
            no longer announces one.
        rhp4_net_addresses: Ordered RHP4 endpoints.

    Examples:
        ```python
        host = Host.from_dict({
            "publicKey": "ed25519:" + "ab" * 32,
            "rhp4NetAddresses": [{"address": "host.example:9984", "protocol": "siamux"}],
        })
        host.rhp4_net_addresses[0].protocol   # 'siamux'
        ```
    """

    public_key: str
    rhp2_net_address: str = ""
    rhp4_net_addresses: tuple[NetAddress, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "public_key", normalize_public_key(self.public_key))
        validate_str_no_null(self.rhp2_net_address, "rhp2_net_address")
        addresses = tuple(self.rhp4_net_addresses)
        for addr in addresses:
            validate_instance(addr, NetAddress, "rhp4_net_addresses item")
        object.__setattr__(self, "rhp4_net_addresses", addresses)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Host:
        """Build from the camelCase JSON descriptor accepted by the API."""
        raw_addresses = data.get("rhp4NetAddresses") or []
        if not isinstance(raw_addresses, list) or not all(
            isinstance(a, dict) for a in raw_addresses
        ):
            raise FormatError("rhp4NetAddresses must be a list of objects")
        return cls(
            public_key=data.get("publicKey", ""),
            rhp2_net_address=data.get("rhp2NetAddress") or "",
            rhp4_net_addresses=tuple(NetAddress.from_dict(a) for a in raw_addresses),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "publicKey": self.public_key,
            "rhp2NetAddress": self.rhp2_net_address,
            "rhp4NetAddresses": [a.to_dict() for a in self.rhp4_net_addresses],
        }
