"""Pure frozen dataclasses with zero I/O for hosts, versions, and chain state.

The models layer is the foundation of the layer stack. Besides the standard
library it only imports the dependency-free
[hostprobe.core.exceptions][hostprobe.core.exceptions] module, so that
parse failures raise [FormatError][hostprobe.core.exceptions.FormatError].
Every model uses ``@dataclass(frozen=True, slots=True)`` and validates in
``__post_init__`` so invalid instances never escape the constructor.

Attributes:
    SemVer: Release version with 0-255 components and an optional
        pre-release suffix; stable sorts above pre-release.
    Host: Public key plus legacy and RHP4 endpoints submitted for a test.
    NetAddress: One RHP4 ``host:port`` endpoint with its protocol tag.
    ConsensusState: Cached chain tip and hard-fork schedule.
    TransportVariant: Every probe variant (``rhp2``, ``rhp3``, ``siamux``,
        ``quic``) with its generation and socket family.

See Also:
    [hostprobe.rhp][hostprobe.rhp]: The probe pipeline that consumes these models.
"""

from .consensus import ChainIndex, ConsensusState, HardforkV2, NetworkParams
from .constants import NEWEST_GENERATION, Protocol, ServiceName, TransportKind, TransportVariant
from .host import KEY_PREFIX, Host, NetAddress, join_host_port, normalize_public_key, split_host_port
from .semver import SemVer, compare


__all__ = [
    "KEY_PREFIX",
    "NEWEST_GENERATION",
    "ChainIndex",
    "ConsensusState",
    "HardforkV2",
    "Host",
    "NetAddress",
    "NetworkParams",
    "Protocol",
    "SemVer",
    "ServiceName",
    "TransportKind",
    "TransportVariant",
    "compare",
    "join_host_port",
    "normalize_public_key",
    "split_host_port",
]
