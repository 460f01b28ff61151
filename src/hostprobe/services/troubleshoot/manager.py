"""Test orchestration for storage hosts.

The [TroubleshootManager][hostprobe.services.troubleshoot.TroubleshootManager]
accepts a [Host][hostprobe.models.host.Host], fans out one
[ProbePipeline][hostprobe.rhp.pipeline.ProbePipeline] probe per endpoint,
and merges the outcomes into an
[AggregateResult][hostprobe.rhp.results.AggregateResult].

Shared state is deliberately small: the cached chain state, the cached
latest release, and the per-key cooldown map. All three sit behind one
``asyncio.Lock`` held only for a read or an atomic update, never across
network I/O. Each test call snapshots the cached state once, so all of its
probes validate against the same view even if a refresh lands mid-call.

Lifecycle:
    1. ``start()`` (or ``async with``): open the upstream clients, fetch
       the chain state and the latest release (failure aborts start),
       launch the two refresh tasks.
    2. ``test_host()``: any number of concurrent calls.
    3. ``shutdown()``: refuse new calls, cancel every in-flight probe
       through the root [CancelScope][hostprobe.core.context.CancelScope],
       stop the refresh tasks, and wait for all of them to exit.

See Also:
    [ManagerConfig][hostprobe.services.troubleshoot.ManagerConfig]:
        Cooldown, deadlines, refresh intervals, and transport providers.
    [Api][hostprobe.services.api.Api]: HTTP front end for this manager.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, Protocol

from hostprobe.core.context import CancelScope
from hostprobe.core.exceptions import (
    CooldownError,
    FormatError,
    ShutdownError,
    UpstreamError,
)
from hostprobe.core.logger import Logger
from hostprobe.core.metrics import PROBE_DURATION_SECONDS, SERVICE_COUNTER, SERVICE_GAUGE
from hostprobe.core.yaml import load_yaml
from hostprobe.models.constants import NEWEST_GENERATION, ServiceName, TransportVariant
from hostprobe.models.host import join_host_port, split_host_port
from hostprobe.models.semver import SemVer
from hostprobe.rhp.pipeline import ProbePipeline
from hostprobe.rhp.results import AggregateResult, ProtocolTestResult
from hostprobe.utils.dns import lookup_ips
from hostprobe.utils.explorer import ExplorerClient
from hostprobe.utils.releases import ReleaseClient

from .configs import ManagerConfig
from .utils import OnceValue, load_provider


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine, Mapping
    from types import TracebackType

    from hostprobe.models.consensus import ConsensusState
    from hostprobe.models.host import Host
    from hostprobe.rhp.settings import Rhp2Settings
    from hostprobe.rhp.transport import TransportProvider


class ConsensusSource(Protocol):
    async def consensus_state(self) -> ConsensusState: ...


class ReleaseSource(Protocol):
    async def latest_release(self) -> str: ...


@dataclass(frozen=True, slots=True)
class StateSnapshot:
    """The external state one test call validates against."""

    consensus: ConsensusState
    latest_release: SemVer


class TroubleshootManager:
    """Coordinates concurrent host tests, cooldowns, and cached chain state.

    Args:
        config: Manager configuration; defaults if omitted.
        explorer: Source of the consensus state. Defaults to an
            [ExplorerClient][hostprobe.utils.explorer.ExplorerClient] owned
            by the manager.
        releases: Source of the latest release string. Defaults to a
            [ReleaseClient][hostprobe.utils.releases.ReleaseClient] owned by
            the manager.
        providers: Transport provider per variant. Defaults to the
            providers named in ``config.transports``.
        resolver: Hostname resolver used by every probe. Defaults to
            [lookup_ips()][hostprobe.utils.dns.lookup_ips] with
            ``config.dns`` settings.

    Examples:
        ```python
        async with TroubleshootManager.from_yaml("config/manager.yaml") as manager:
            result = await manager.test_host(host)
            print(result.to_dict())
        ```
    """

    def __init__(
        self,
        config: ManagerConfig | None = None,
        *,
        explorer: ConsensusSource | None = None,
        releases: ReleaseSource | None = None,
        providers: Mapping[TransportVariant, TransportProvider] | None = None,
        resolver: Callable[[str], Awaitable[list[str]]] | None = None,
    ) -> None:
        self._config = config or ManagerConfig()
        self._logger = Logger(ServiceName.MANAGER)
        self._explorer = explorer
        self._releases = releases
        self._owned: list[ExplorerClient | ReleaseClient] = []

        if providers is None:
            providers = {
                variant: load_provider(path, variant)
                for variant, path in self._config.transports.items()
            }
        if resolver is None:
            dns = self._config.dns
            resolver = partial(
                lookup_ips,
                fallback_server=dns.fallback_server,
                timeout=dns.timeout,
                max_depth=dns.max_cname_depth,
            )
        self._pipeline = ProbePipeline(
            providers, resolver, self._config.timeouts.to_stage_timeouts()
        )

        self._lock = asyncio.Lock()
        self._consensus: ConsensusState | None = None
        self._latest_release: SemVer | None = None
        self._cooldowns: dict[str, float] = {}

        self._root = CancelScope()
        self._started = False
        self._closing = asyncio.Event()
        self._refresh_tasks: list[asyncio.Task[None]] = []
        self._inflight: set[asyncio.Task[Any]] = set()

    @property
    def config(self) -> ManagerConfig:
        """The manager configuration (read-only)."""
        return self._config

    @property
    def is_running(self) -> bool:
        """Started and not yet shutting down."""
        return self._started and not self._closing.is_set()

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, config_path: str, **kwargs: Any) -> TroubleshootManager:
        """Create a manager from a YAML configuration file (not yet started)."""
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> TroubleshootManager:
        """Create a manager by parsing *data* into a [ManagerConfig][hostprobe.services.troubleshoot.ManagerConfig]."""
        return cls(config=ManagerConfig(**data), **kwargs)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Fetch the initial external state and launch the refresh tasks.

        Raises:
            UpstreamError: If the chain state or the latest release cannot
                be fetched.
            FormatError: If the latest release is not a valid version.
            ShutdownError: If the manager was already shut down.
        """
        if self._closing.is_set():
            raise ShutdownError("manager has been shut down")
        if self._started:
            return

        if self._explorer is None:
            client = ExplorerClient(self._config.explorer)
            await client.__aenter__()
            self._owned.append(client)
            self._explorer = client
        if self._releases is None:
            releases = ReleaseClient(self._config.release)
            await releases.__aenter__()
            self._owned.append(releases)
            self._releases = releases

        try:
            await self._refresh_release()
            await self._refresh_consensus()
        except (UpstreamError, FormatError):
            await self._close_owned()
            raise

        self._refresh_tasks = [
            asyncio.create_task(
                self._refresh_loop("tip", self._config.refresh.tip_interval, self._refresh_consensus)
            ),
            asyncio.create_task(
                self._refresh_loop(
                    "release", self._config.refresh.release_interval, self._refresh_release
                )
            ),
        ]
        self._started = True
        self._logger.info(
            "manager_started",
            tip_height=self._consensus.tip_height if self._consensus else None,
            latest_release=str(self._latest_release),
        )

    async def shutdown(self) -> None:
        """Stop accepting work, cancel in-flight probes, and wait for everything to exit.

        Idempotent. In-flight ``test_host`` calls still return their
        partial results.
        """
        if self._closing.is_set():
            return
        self._closing.set()
        self._root.cancel("manager shutting down")
        self._logger.info("manager_stopping", inflight=len(self._inflight))

        for task in self._refresh_tasks:
            task.cancel()
        await asyncio.gather(*self._refresh_tasks, *self._inflight, return_exceptions=True)
        self._refresh_tasks = []
        await self._close_owned()
        self._logger.info("manager_stopped")

    async def _close_owned(self) -> None:
        for client in self._owned:
            await client.close()
        self._owned.clear()

    async def __aenter__(self) -> TroubleshootManager:
        await self.start()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    # -------------------------------------------------------------------------
    # External State
    # -------------------------------------------------------------------------

    async def _refresh_consensus(self) -> None:
        assert self._explorer is not None
        state = await self._explorer.consensus_state()
        async with self._lock:
            self._consensus = state
        self._set_gauge("tip_height", state.tip_height)
        self._logger.debug("tip_refreshed", height=state.tip_height)

    async def _refresh_release(self) -> None:
        assert self._releases is not None
        name = await self._releases.latest_release()
        release = SemVer.parse_release(name)
        async with self._lock:
            self._latest_release = release
        self._logger.debug("release_refreshed", release=str(release))

    async def _refresh_loop(
        self, name: str, interval: float, refresh: Callable[[], Awaitable[None]]
    ) -> None:
        """Re-run *refresh* every *interval* seconds until shutdown.

        Failures keep the previous cached value; unexpected errors from the
        source are logged and the loop carries on.
        """
        while True:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._closing.wait(), timeout=interval)
                return
            try:
                await refresh()
            except (UpstreamError, FormatError) as e:
                self._inc_counter(f"{name}_refresh_failed")
                self._logger.warning(f"{name}_refresh_failed", error=str(e))
            except Exception as e:  # top-level error boundary for the refresh loop
                self._inc_counter(f"{name}_refresh_failed")
                self._logger.error(
                    f"{name}_refresh_error", error=str(e), error_type=type(e).__name__
                )

    async def snapshot(self) -> StateSnapshot:
        """Return the cached external state as one consistent pair.

        Raises:
            ShutdownError: If the manager has not been started.
        """
        async with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> StateSnapshot:
        if self._consensus is None or self._latest_release is None:
            raise ShutdownError("manager is not started")
        return StateSnapshot(consensus=self._consensus, latest_release=self._latest_release)

    # -------------------------------------------------------------------------
    # Host Tests
    # -------------------------------------------------------------------------

    async def test_host(self, host: Host, *, timeout: float | None = None) -> AggregateResult:  # noqa: ASYNC109
        """Probe every endpoint of *host* concurrently and merge the results.

        Args:
            host: The host to test.
            timeout: Deadline for the whole call; defaults to
                ``config.test_timeout``.

        Returns:
            The aggregate report. Probe failures are recorded inside it;
            partial results are the normal outcome.

        Raises:
            ShutdownError: If the manager is not running.
            CooldownError: If *host* was tested less than ``config.cooldown``
                seconds ago.
        """
        if not self.is_running:
            raise ShutdownError("manager is shutting down")

        now = time.monotonic()
        async with self._lock:
            expiry = self._cooldowns.get(host.public_key, 0.0)
            if expiry > now:
                self._inc_counter("cooldown_rejections")
                raise CooldownError(expiry - now)
            self._prune_cooldowns(now)
            self._cooldowns[host.public_key] = now + self._config.cooldown
            snapshot = self._snapshot_locked()

        log = self._logger.bind(host=host.public_key)
        log.debug(
            "host_test_started",
            tip_height=snapshot.consensus.tip_height,
            legacy=snapshot.consensus.legacy_active,
            rhp4_addresses=len(host.rhp4_net_addresses),
        )
        start = time.monotonic()
        scope = self._root.child(timeout if timeout is not None else self._config.test_timeout)
        try:
            result = await self._run_probes(host, snapshot, scope)
        finally:
            scope.cancel("test finished")

        self._inc_counter("hosts_tested")
        log.info(
            "host_tested",
            version=result.version,
            probes=len(result.results()),
            errors=sum(len(r.errors) for r in result.results()),
            elapsed_s=round(time.monotonic() - start, 3),
        )
        return result

    def _prune_cooldowns(self, now: float) -> None:
        expired = [key for key, expiry in self._cooldowns.items() if expiry <= now]
        for key in expired:
            del self._cooldowns[key]

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _run_probes(
        self, host: Host, snapshot: StateSnapshot, scope: CancelScope
    ) -> AggregateResult:
        rhp4: list[ProtocolTestResult | None] = [None] * len(host.rhp4_net_addresses)
        pending: dict[int, tuple[str, str, asyncio.Task[ProtocolTestResult]]] = {}
        sticky_version = OnceValue[str]()
        seen: set[str] = set()

        for i, addr in enumerate(host.rhp4_net_addresses):
            if addr.protocol in seen:
                rhp4[i] = ProtocolTestResult.failed(
                    addr.protocol, addr.address, f'duplicate protocol "{addr.protocol}"'
                )
                continue
            seen.add(addr.protocol)
            variant = _newest_variant(addr.protocol)
            if variant is None:
                rhp4[i] = ProtocolTestResult.failed(
                    addr.protocol, addr.address, f'unknown protocol "{addr.protocol}"'
                )
                continue
            task = self._spawn(
                self._probe_rhp4(variant, addr.address, host, snapshot, scope, sticky_version)
            )
            pending[i] = (addr.protocol, addr.address, task)

        legacy_task = None
        if snapshot.consensus.legacy_active and host.rhp2_net_address:
            legacy_task = self._spawn(self._probe_legacy(host, snapshot, scope))

        tasks: list[asyncio.Task[Any]] = [t for _, _, t in pending.values()]
        if legacy_task is not None:
            tasks.append(legacy_task)
        await asyncio.gather(*tasks, return_exceptions=True)

        for i, (protocol, address, task) in pending.items():
            rhp4[i] = self._task_result(task, protocol, address)

        rhp2 = rhp3 = None
        if legacy_task is not None:
            if legacy_task.cancelled() or legacy_task.exception() is not None:
                rhp2 = self._task_result(
                    legacy_task, TransportVariant.RHP2, host.rhp2_net_address
                )
            else:
                rhp2, rhp3 = legacy_task.result()

        results = [r for r in rhp4 if r is not None]
        return AggregateResult(
            public_key=host.public_key,
            version=_aggregate_version(results, rhp2),
            rhp2=rhp2,
            rhp3=rhp3,
            rhp4=results,
        )

    def _task_result(self, task: asyncio.Task[Any], variant: str, address: str) -> ProtocolTestResult:
        """Unwrap a finished probe task, turning an escaped exception into an error result."""
        if task.cancelled():
            return ProtocolTestResult.failed(variant, address, "probe cancelled")
        exc = task.exception()
        if exc is None:
            return task.result()  # type: ignore[no-any-return]
        self._logger.error("probe_crashed", variant=variant, address=address, error=str(exc))
        return ProtocolTestResult.failed(variant, address, f"internal error: {exc}")

    async def _probe(
        self, variant: TransportVariant, address: str, host: Host, snapshot: StateSnapshot,
        scope: CancelScope,
    ) -> ProtocolTestResult:
        start = time.monotonic()
        result = await self._pipeline.probe(
            variant,
            address,
            host.public_key,
            latest_release=snapshot.latest_release,
            tip_height=snapshot.consensus.tip_height,
            scope=scope,
        )
        if self._config.metrics.enabled:
            PROBE_DURATION_SECONDS.labels(variant=variant).observe(time.monotonic() - start)
        self._inc_counter(f"probes_{variant}")
        if result.errors:
            self._inc_counter(f"probe_errors_{variant}")
        return result

    async def _probe_rhp4(
        self,
        variant: TransportVariant,
        address: str,
        host: Host,
        snapshot: StateSnapshot,
        scope: CancelScope,
        sticky_version: OnceValue[str],
    ) -> ProtocolTestResult:
        result = await self._probe(variant, address, host, snapshot, scope)
        release = result.release
        if release is not None:
            winner = sticky_version.set(release)
            if release != winner:
                result = result.with_error(
                    f'host is reporting multiple versions "{winner}" and "{release}"'
                )
        return result

    async def _probe_legacy(
        self, host: Host, snapshot: StateSnapshot, scope: CancelScope
    ) -> tuple[ProtocolTestResult, ProtocolTestResult | None]:
        """Probe RHP2, then RHP3 at the SiaMux port the RHP2 settings advertise."""
        rhp2 = await self._probe(
            TransportVariant.RHP2, host.rhp2_net_address, host, snapshot, scope
        )
        settings: Rhp2Settings | None = rhp2.settings  # type: ignore[assignment]
        if settings is None:
            return rhp2, None

        try:
            hostname, _ = split_host_port(settings.net_address)
            if not settings.siamux_port:
                raise FormatError("missing siamux port")
        except FormatError as e:
            return rhp2, ProtocolTestResult.failed(
                TransportVariant.RHP3,
                "",
                f'failed to parse net address "{settings.net_address}": {e}',
            )
        rhp3_address = join_host_port(hostname, settings.siamux_port)
        rhp3 = await self._probe(TransportVariant.RHP3, rhp3_address, host, snapshot, scope)
        return rhp2, rhp3

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def _set_gauge(self, name: str, value: float) -> None:
        if self._config.metrics.enabled:
            SERVICE_GAUGE.labels(service=ServiceName.MANAGER, name=name).set(value)

    def _inc_counter(self, name: str, value: float = 1) -> None:
        if self._config.metrics.enabled:
            SERVICE_COUNTER.labels(service=ServiceName.MANAGER, name=name).inc(value)


def _newest_variant(protocol: str) -> TransportVariant | None:
    """Map an RHP4 protocol tag onto its variant, or ``None`` if unknown."""
    try:
        variant = TransportVariant(protocol)
    except ValueError:
        return None
    return variant if variant.generation == NEWEST_GENERATION else None


def _aggregate_version(rhp4: list[ProtocolTestResult], rhp2: ProtocolTestResult | None) -> str:
    """Prefer the first newest-generation probe with settings, then the legacy one."""
    for result in rhp4:
        if result.release:
            return result.release
    if rhp2 is not None and rhp2.release:
        return rhp2.release
    return ""
