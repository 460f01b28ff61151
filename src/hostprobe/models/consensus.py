"""Chain state snapshot used to sanity-check a host's reported height.

The explorer reports the current tip and the network parameters; the
manager caches one [ConsensusState][hostprobe.models.consensus.ConsensusState]
and hands the same instance to every probe of a run. Only the fields the
probes consume are modeled.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from hostprobe.core.exceptions import FormatError

from ._validation import validate_height, validate_instance, validate_str_no_null


@dataclass(frozen=True, slots=True)
class ChainIndex:
    """A block height and the block id at that height."""

    height: int
    id: str = ""

    def __post_init__(self) -> None:
        validate_height(self.height, "height")
        validate_str_no_null(self.id, "id")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChainIndex:
        try:
            return cls(height=int(data["height"]), id=str(data.get("id", "")))
        except (KeyError, TypeError, ValueError) as e:
            raise FormatError(f"invalid chain index: {data!r}") from e

    def to_dict(self) -> dict[str, Any]:
        return {"height": self.height, "id": self.id}


@dataclass(frozen=True, slots=True)
class HardforkV2:
    """Heights at which the v2 protocol is allowed, then required.

    Attributes:
        allow_height: From this height on, legacy generations (RHP2/RHP3)
            are no longer probed.
        require_height: Height at which v1 transactions stop being valid.
    """

    allow_height: int
    require_height: int

    def __post_init__(self) -> None:
        validate_height(self.allow_height, "allow_height")
        validate_height(self.require_height, "require_height")
        if self.require_height < self.allow_height:
            raise ValueError("require_height must not precede allow_height")


@dataclass(frozen=True, slots=True)
class NetworkParams:
    """Network name plus the hard-fork schedule."""

    name: str
    hardfork_v2: HardforkV2

    def __post_init__(self) -> None:
        validate_str_no_null(self.name, "name")
        validate_instance(self.hardfork_v2, HardforkV2, "hardfork_v2")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NetworkParams:
        """Build from the explorer's ``/consensus/network`` document."""
        try:
            fork = data["hardforkV2"]
            return cls(
                name=str(data.get("name", "")),
                hardfork_v2=HardforkV2(
                    allow_height=int(fork["allowHeight"]),
                    require_height=int(fork["requireHeight"]),
                ),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FormatError(f"invalid network parameters: {e}") from e


@dataclass(frozen=True, slots=True)
class ConsensusState:
    """Tip index plus network parameters at the time of the last refresh.

    Examples:
        ```python
        state = ConsensusState(
            index=ChainIndex(height=530_000),
            network=NetworkParams("mainnet", HardforkV2(526_000, 530_000)),
        )
        state.legacy_active   # False
        ```
    """

    index: ChainIndex
    network: NetworkParams

    def __post_init__(self) -> None:
        validate_instance(self.index, ChainIndex, "index")
        validate_instance(self.network, NetworkParams, "network")

    @property
    def tip_height(self) -> int:
        return self.index.height

    @property
    def legacy_active(self) -> bool:
        """True while the tip is below the v2 allow height (RHP2/RHP3 still probed)."""
        return self.index.height < self.network.hardfork_v2.allow_height
