"""Shared constants for the models layer.

Defines the enumerations used across the models, rhp, and services layers.
Placing them here avoids circular dependencies between the layers above.

See Also:
    [hostprobe.models.host][]: Uses [Protocol][hostprobe.models.constants.Protocol]
        to tag RHP4 endpoints.
    [hostprobe.rhp.pipeline][]: Dispatches probes through the
        [TransportVariant][hostprobe.models.constants.TransportVariant] table.
"""

from __future__ import annotations

from enum import StrEnum


class Protocol(StrEnum):
    """Transport protocol tag carried by an RHP4 [NetAddress][hostprobe.models.host.NetAddress].

    Attributes:
        SIAMUX: Stream transport multiplexed over TCP.
        QUIC: Datagram transport over UDP.
    """

    SIAMUX = "siamux"
    QUIC = "quic"


class TransportKind(StrEnum):
    """Underlying socket family a transport variant is dialed over."""

    STREAM = "tcp"
    DATAGRAM = "udp"


class TransportVariant(StrEnum):
    """Every (generation, transport) pair the pipeline knows how to probe.

    Attributes:
        RHP2: Legacy generation 2 renter-host protocol (stream).
        RHP3: Legacy generation 3 protocol, reached through the SiaMux port
            advertised in the RHP2 settings (stream).
        SIAMUX: Generation 4 over SiaMux (stream).
        QUIC: Generation 4 over QUIC (datagram).

    Note:
        Generation 4 variants share their string values with
        [Protocol][hostprobe.models.constants.Protocol], so an RHP4 address
        tag maps directly onto its variant.
    """

    RHP2 = "rhp2"
    RHP3 = "rhp3"
    SIAMUX = "siamux"
    QUIC = "quic"

    @property
    def generation(self) -> int:
        """Protocol generation number (2, 3, or 4)."""
        return _GENERATIONS[self]

    @property
    def kind(self) -> TransportKind:
        """Socket family used to reach this variant."""
        return TransportKind.DATAGRAM if self is TransportVariant.QUIC else TransportKind.STREAM


_GENERATIONS: dict[TransportVariant, int] = {
    TransportVariant.RHP2: 2,
    TransportVariant.RHP3: 3,
    TransportVariant.SIAMUX: 4,
    TransportVariant.QUIC: 4,
}

NEWEST_GENERATION = 4


class ServiceName(StrEnum):
    """Canonical component identifiers used in logging and metrics labels."""

    MANAGER = "manager"
    API = "api"
