"""Transport provider interface and the dial error taxonomy.

The pipeline never speaks a wire protocol itself. For each transport
variant it is handed a provider exposing three operations:

* ``dial(address, timeout)`` opens the raw connection;
* ``upgrade(conn, host_key)`` performs the variant's authenticated
  handshake and returns a transport handle;
* ``query_settings(transport)`` issues the settings RPC and returns the
  decoded document (a mapping or a
  [HostSettingsPayload][hostprobe.rhp.settings.HostSettingsPayload]).

[StreamTransportProvider][hostprobe.rhp.transport.StreamTransportProvider]
owns the TCP dial and its error taxonomy; a wire-protocol binding only
supplies ``upgrade`` and ``query_settings``.
[DatagramTransportProvider][hostprobe.rhp.transport.DatagramTransportProvider]
models QUIC-style transports where connecting and authenticating are one
exchange: ``dial`` only validates the address and ``upgrade`` does the
actual work, which the pipeline times and classifies as a single step.

Raw exceptions from a provider are translated into user-facing
[DialError][hostprobe.core.exceptions.DialError] subclasses by
``classify_dial_error`` so the report tells the operator what to fix.
"""

from __future__ import annotations

import asyncio
import contextlib
import socket
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, runtime_checkable

from hostprobe.core.exceptions import (
    ConnectionRefusedDialError,
    DialDnsError,
    DialError,
    DialTimeoutError,
    UnreachablePortError,
)
from hostprobe.models.constants import TransportKind
from hostprobe.models.host import split_host_port


_NO_NETWORK_ACTIVITY = "no recent network activity"


@runtime_checkable
class TransportProvider(Protocol):
    """Capability set the pipeline needs for one transport variant."""

    kind: TransportKind

    async def dial(self, address: str, timeout: float) -> Any: ...  # noqa: ASYNC109

    async def upgrade(self, conn: Any, host_key: str) -> Any: ...

    async def query_settings(self, transport: Any) -> Any: ...

    async def close(self, handle: Any) -> None: ...

    def classify_dial_error(self, address: str, exc: BaseException) -> DialError: ...


@dataclass(slots=True)
class StreamConnection:
    """An open TCP connection as returned by ``asyncio.open_connection``."""

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    async def close(self) -> None:
        self.writer.close()
        with contextlib.suppress(OSError):
            await self.writer.wait_closed()


class StreamTransportProvider:
    """Base provider for variants carried over TCP.

    Subclasses implement [upgrade()][hostprobe.rhp.transport.StreamTransportProvider.upgrade]
    and [query_settings()][hostprobe.rhp.transport.StreamTransportProvider.query_settings]
    on top of the [StreamConnection][hostprobe.rhp.transport.StreamConnection]
    returned by ``dial``.
    """

    kind: ClassVar[TransportKind] = TransportKind.STREAM

    async def dial(self, address: str, timeout: float) -> StreamConnection:  # noqa: ASYNC109
        host, port = split_host_port(address)
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, int(port)), timeout=timeout
        )
        return StreamConnection(reader, writer)

    async def upgrade(self, conn: StreamConnection, host_key: str) -> Any:
        raise NotImplementedError

    async def query_settings(self, transport: Any) -> Any:
        raise NotImplementedError

    async def close(self, handle: Any) -> None:
        """Close a connection or transport handle if it knows how to close itself."""
        closer = getattr(handle, "close", None)
        if closer is None:
            return
        result = closer()
        if asyncio.iscoroutine(result):
            await result

    def classify_dial_error(self, address: str, exc: BaseException) -> DialError:
        if isinstance(exc, DialError):
            return exc
        if isinstance(exc, socket.gaierror):
            return DialDnsError(f'failed to resolve host "{address}": check DNS setup')
        if isinstance(exc, ConnectionRefusedError):
            return ConnectionRefusedDialError(
                f'connection refused at "{address}": '
                "check if the service is running and port is forwarded"
            )
        if isinstance(exc, TimeoutError):
            return DialTimeoutError(
                f'timeout connecting to "{address}": check port forwarding or firewall'
            )
        return DialError(f'failed to connect to host at "{address}": {exc}')


class DatagramTransportProvider(StreamTransportProvider):
    """Base provider for variants carried over UDP (QUIC).

    ``dial`` returns the address unchanged; subclasses connect and
    authenticate in ``upgrade(address, host_key)``.
    """

    kind: ClassVar[TransportKind] = TransportKind.DATAGRAM
    protocol_name: ClassVar[str] = "quic"

    async def dial(self, address: str, timeout: float) -> str:  # noqa: ASYNC109
        split_host_port(address)
        return address

    def classify_dial_error(self, address: str, exc: BaseException) -> DialError:
        if isinstance(exc, DialError):
            return exc
        if isinstance(exc, TimeoutError) or _NO_NETWORK_ACTIVITY in str(exc):
            try:
                _, port = split_host_port(address)
            except ValueError:
                port = ""
            return UnreachablePortError(
                f"failed to connect to {self.protocol_name}: check port forwarding "
                f'and firewall settings for UDP port "{port}"'
            )
        return DialError(f"failed to connect to {self.protocol_name}: {exc}")
