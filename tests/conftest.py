"""
Pytest configuration and shared fixtures for HostProbe tests.

Provides:
- Fake transport providers that simulate hosts without network access
- Chain state, release, and host sample data
- Stub explorer/release sources for the manager
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from hostprobe.core.context import CancelScope
from hostprobe.models import ChainIndex, ConsensusState, HardforkV2, Host, NetAddress, NetworkParams
from hostprobe.models.semver import SemVer
from hostprobe.rhp.transport import DatagramTransportProvider, StreamTransportProvider


HOST_KEY = "ed25519:" + "ab" * 32
TIP_HEIGHT = 530_000


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Fake Transport Providers
# ============================================================================


class FakeStreamProvider(StreamTransportProvider):
    """Stream provider answering from canned values.

    Each stage either raises its configured error, sleeps for its configured
    delay, or succeeds. Dialed addresses and closed handles are recorded.
    """

    def __init__(
        self,
        settings: Any = None,
        *,
        dial_error: BaseException | None = None,
        upgrade_error: BaseException | None = None,
        scan_error: BaseException | None = None,
        dial_delay: float = 0.0,
        upgrade_delay: float = 0.0,
        scan_delay: float = 0.0,
    ) -> None:
        self.settings = settings
        self.dial_error = dial_error
        self.upgrade_error = upgrade_error
        self.scan_error = scan_error
        self.dial_delay = dial_delay
        self.upgrade_delay = upgrade_delay
        self.scan_delay = scan_delay
        self.dialed: list[str] = []
        self.closed: list[Any] = []

    async def dial(self, address: str, timeout: float) -> Any:
        self.dialed.append(address)
        if self.dial_delay:
            await asyncio.sleep(self.dial_delay)
        if self.dial_error is not None:
            raise self.dial_error
        return ("conn", address)

    async def upgrade(self, conn: Any, host_key: str) -> Any:
        if self.upgrade_delay:
            await asyncio.sleep(self.upgrade_delay)
        if self.upgrade_error is not None:
            raise self.upgrade_error
        return conn

    async def query_settings(self, transport: Any) -> Any:
        if self.scan_delay:
            await asyncio.sleep(self.scan_delay)
        if self.scan_error is not None:
            raise self.scan_error
        return self.settings

    async def close(self, handle: Any) -> None:
        self.closed.append(handle)


class FakeDatagramProvider(DatagramTransportProvider):
    """Datagram provider whose combined connect step is ``upgrade``."""

    def __init__(
        self,
        settings: Any = None,
        *,
        connect_error: BaseException | None = None,
        connect_delay: float = 0.0,
        scan_delay: float = 0.0,
    ) -> None:
        self.settings = settings
        self.connect_error = connect_error
        self.connect_delay = connect_delay
        self.scan_delay = scan_delay
        self.dialed: list[str] = []
        self.closed: list[Any] = []

    async def dial(self, address: str, timeout: float) -> str:
        self.dialed.append(address)
        return await super().dial(address, timeout)

    async def upgrade(self, conn: Any, host_key: str) -> Any:
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        return ("session", conn)

    async def query_settings(self, transport: Any) -> Any:
        if self.scan_delay:
            await asyncio.sleep(self.scan_delay)
        return self.settings

    async def close(self, handle: Any) -> None:
        self.closed.append(handle)


@pytest.fixture
def stream_provider() -> type[FakeStreamProvider]:
    return FakeStreamProvider


@pytest.fixture
def datagram_provider() -> type[FakeDatagramProvider]:
    return FakeDatagramProvider


# ============================================================================
# Sample Data
# ============================================================================


def rhp4_settings(**overrides: Any) -> dict[str, Any]:
    """A healthy generation 4 settings document, optionally overridden."""
    data: dict[str, Any] = {
        "release": "v1.6.0",
        "acceptingContracts": True,
        "maxCollateral": "100",
        "maxContractDuration": 4320,
        "prices": {
            "collateral": "25",
            "storagePrice": "10",
            "tipHeight": TIP_HEIGHT,
        },
    }
    data.update(overrides)
    return data


@pytest.fixture
def rhp4_payload() -> Any:
    return rhp4_settings


@pytest.fixture
def host_key() -> str:
    return HOST_KEY


@pytest.fixture
def latest_release() -> SemVer:
    return SemVer.parse("v1.6.0")


@pytest.fixture
def consensus_state() -> ConsensusState:
    """Chain state after the v2 hard fork (legacy probes disabled)."""
    return ConsensusState(
        index=ChainIndex(height=TIP_HEIGHT, id="tip"),
        network=NetworkParams("mainnet", HardforkV2(allow_height=526_000, require_height=530_000)),
    )


@pytest.fixture
def legacy_consensus_state() -> ConsensusState:
    """Chain state before the v2 hard fork (legacy probes enabled)."""
    return ConsensusState(
        index=ChainIndex(height=TIP_HEIGHT, id="tip"),
        network=NetworkParams("mainnet", HardforkV2(allow_height=600_000, require_height=610_000)),
    )


@pytest.fixture
def make_host() -> Any:
    def _make(*addresses: tuple[str, str], rhp2: str = "") -> Host:
        return Host(
            public_key=HOST_KEY,
            rhp2_net_address=rhp2,
            rhp4_net_addresses=tuple(NetAddress(address=a, protocol=p) for a, p in addresses),
        )

    return _make


@pytest.fixture
def scope() -> CancelScope:
    return CancelScope()


@pytest.fixture
def resolver() -> AsyncMock:
    """Resolver returning one documentation-range address for any name."""
    return AsyncMock(return_value=["203.0.113.7"])


# ============================================================================
# External State Stubs
# ============================================================================


@pytest.fixture
def explorer(consensus_state: ConsensusState) -> MagicMock:
    source = MagicMock()
    source.consensus_state = AsyncMock(return_value=consensus_state)
    return source


@pytest.fixture
def releases() -> MagicMock:
    source = MagicMock()
    source.latest_release = AsyncMock(return_value="hostd v1.6.0")
    return source
