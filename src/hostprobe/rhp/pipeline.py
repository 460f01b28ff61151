"""Staged probe of one (address, transport variant) pair.

Each probe walks ``resolve -> dial -> handshake -> scan -> validate`` in
strict order. A failing stage records one error and ends the probe; later
stage fields keep their zero values and no warnings are produced. Probes
never retry.

Per-variant differences are data, not control flow: a
[VariantSpec][hostprobe.rhp.pipeline.VariantSpec] per
[TransportVariant][hostprobe.models.constants.TransportVariant] supplies
the error wording and, through
[VARIANT_CHECKS][hostprobe.rhp.checks.VARIANT_CHECKS], the validation rules.
Datagram variants fold dial and handshake into one timed step.

Every stage runs under the run's
[CancelScope][hostprobe.core.context.CancelScope], so a shutdown or an
expired call deadline ends the probe with whatever it had completed.

See Also:
    [TroubleshootManager][hostprobe.services.troubleshoot.TroubleshootManager]:
        Fans out one pipeline probe per address.
    [TransportProvider][hostprobe.rhp.transport.TransportProvider]: The
        swappable wire-protocol boundary.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from hostprobe.core.exceptions import (
    DnsError,
    FormatError,
    HostNotFoundError,
    ProbeCancelledError,
)
from hostprobe.models.constants import TransportKind, TransportVariant
from hostprobe.models.host import split_host_port

from .checks import CheckContext, run_checks
from .results import ProtocolTestResult
from .settings import HostSettingsPayload, decode_settings


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from hostprobe.core.context import CancelScope
    from hostprobe.models.semver import SemVer

    from .transport import TransportProvider

    Resolver = Callable[[str], Awaitable[list[str]]]


logger = logging.getLogger("hostprobe.rhp")


@dataclass(frozen=True, slots=True)
class VariantSpec:
    """Error wording for a variant's handshake and scan stages."""

    variant: TransportVariant
    handshake_error: str
    scan_error: str = "failed to get settings"


VARIANT_SPECS: dict[TransportVariant, VariantSpec] = {
    TransportVariant.RHP2: VariantSpec(TransportVariant.RHP2, "failed to create transport"),
    TransportVariant.RHP3: VariantSpec(
        TransportVariant.RHP3, "failed to create transport", "failed to scan price table"
    ),
    TransportVariant.SIAMUX: VariantSpec(TransportVariant.SIAMUX, "failed to connect to siamux"),
    TransportVariant.QUIC: VariantSpec(TransportVariant.QUIC, "failed to connect to quic"),
}


@dataclass(frozen=True, slots=True)
class StageTimeouts:
    """Upper bounds in seconds for the network stages of a probe."""

    dial: float = 120.0
    handshake: float = 30.0
    scan: float = 30.0


@dataclass(slots=True)
class _ProbeState:
    resolved_addresses: list[str] = field(default_factory=list)
    connected: bool = False
    dial_time: int = 0
    handshake: bool = False
    handshake_time: int = 0
    scanned: bool = False
    scan_time: int = 0
    settings: HostSettingsPayload | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def fail(self, message: str) -> None:
        self.errors.append(message)


def _elapsed_ms(start: float) -> int:
    return int((perf_counter() - start) * 1000)


async def _close_quietly(provider: TransportProvider, handle: Any) -> None:
    try:
        await provider.close(handle)
    except Exception as e:  # a failed close must not hide the probe outcome
        logger.debug("transport_close_failed error=%s", e)


class ProbePipeline:
    """Runs probes through the staged state machine.

    Args:
        providers: Transport provider per variant. A variant without a
            provider yields a per-probe error.
        resolver: Coroutine function mapping a hostname to IP literals;
            raises [DnsError][hostprobe.core.exceptions.DnsError] or
            [HostNotFoundError][hostprobe.core.exceptions.HostNotFoundError].
        timeouts: Per-stage time limits.
    """

    def __init__(
        self,
        providers: Mapping[TransportVariant, TransportProvider],
        resolver: Resolver,
        timeouts: StageTimeouts | None = None,
    ) -> None:
        self._providers = dict(providers)
        self._resolver = resolver
        self._timeouts = timeouts or StageTimeouts()

    async def probe(
        self,
        variant: TransportVariant,
        address: str,
        host_key: str,
        *,
        latest_release: SemVer,
        tip_height: int,
        scope: CancelScope,
    ) -> ProtocolTestResult:
        """Probe *address* over *variant* and return what was reached.

        Never raises for probe-level failures; they are recorded in the
        result's ``errors``.
        """
        state = _ProbeState()
        start = perf_counter()
        async with contextlib.AsyncExitStack() as stack:
            await self._run(stack, state, variant, address, host_key, scope)
            if state.settings is not None:
                errors, warnings = run_checks(
                    variant,
                    state.settings.view(),
                    CheckContext(
                        latest_release=latest_release,
                        tip_height=tip_height,
                        dialed_address=address,
                    ),
                )
                state.errors.extend(errors)
                state.warnings.extend(warnings)

        logger.debug(
            "probe_finished variant=%s address=%s connected=%s scanned=%s errors=%d "
            "warnings=%d elapsed_ms=%d",
            variant,
            address,
            state.connected,
            state.scanned,
            len(state.errors),
            len(state.warnings),
            _elapsed_ms(start),
        )
        return ProtocolTestResult(
            variant=variant,
            address=address,
            resolved_addresses=state.resolved_addresses,
            connected=state.connected,
            dial_time=state.dial_time,
            handshake=state.handshake,
            handshake_time=state.handshake_time,
            scanned=state.scanned,
            scan_time=state.scan_time,
            settings=state.settings,
            errors=state.errors,
            warnings=state.warnings,
        )

    async def _run(
        self,
        stack: contextlib.AsyncExitStack,
        state: _ProbeState,
        variant: TransportVariant,
        address: str,
        host_key: str,
        scope: CancelScope,
    ) -> None:
        spec = VARIANT_SPECS[variant]
        provider = self._providers.get(variant)
        if provider is None:
            state.fail(f"no transport provider configured for {variant}")
            return

        # Resolve
        try:
            hostname, _ = split_host_port(address)
        except FormatError as e:
            state.fail(f'failed to parse net address "{address}": {e}')
            return
        try:
            state.resolved_addresses = list(await scope.run(self._resolver(hostname)))
        except ProbeCancelledError as e:
            state.fail(f"probe cancelled during resolve: {e}")
            return
        except HostNotFoundError:
            state.fail(f'DNS lookup "{hostname}" failed: check DNS records or wait for propagation')
            return
        except (DnsError, TimeoutError) as e:
            state.fail(f'failed to resolve host "{hostname}": {e}')
            return

        # Dial and handshake
        if variant.kind is TransportKind.DATAGRAM:
            transport = await self._connect_datagram(stack, state, provider, address, host_key, scope)
        else:
            transport = await self._connect_stream(
                stack, state, spec, provider, address, host_key, scope
            )
        if transport is None:
            return

        # Scan
        scan_start = perf_counter()
        try:
            raw = await scope.run(provider.query_settings(transport), timeout=self._timeouts.scan)
            settings = decode_settings(variant, raw)
        except ProbeCancelledError as e:
            state.fail(f"probe cancelled during scan: {e}")
            return
        except (ValidationError, TypeError) as e:
            state.fail(f"{spec.scan_error}: invalid settings payload: {e}")
            return
        except Exception as e:  # provider error boundary
            state.fail(f"{spec.scan_error}: {e}")
            return
        state.scan_time = _elapsed_ms(scan_start)
        state.scanned = True
        state.settings = settings

    async def _connect_stream(
        self,
        stack: contextlib.AsyncExitStack,
        state: _ProbeState,
        spec: VariantSpec,
        provider: TransportProvider,
        address: str,
        host_key: str,
        scope: CancelScope,
    ) -> Any:
        dial_start = perf_counter()
        try:
            conn = await scope.run(
                provider.dial(address, self._timeouts.dial), timeout=self._timeouts.dial
            )
        except ProbeCancelledError as e:
            state.fail(f"probe cancelled during dial: {e}")
            return None
        except Exception as e:  # provider error boundary
            state.fail(str(provider.classify_dial_error(address, e)))
            return None
        stack.push_async_callback(_close_quietly, provider, conn)
        state.dial_time = _elapsed_ms(dial_start)
        state.connected = True

        handshake_start = perf_counter()
        try:
            transport = await scope.run(
                provider.upgrade(conn, host_key), timeout=self._timeouts.handshake
            )
        except ProbeCancelledError as e:
            state.fail(f"probe cancelled during handshake: {e}")
            return None
        except Exception as e:  # provider error boundary
            state.fail(f"{spec.handshake_error}: {e}")
            return None
        if transport is not conn:
            stack.push_async_callback(_close_quietly, provider, transport)
        state.handshake_time = _elapsed_ms(handshake_start)
        state.handshake = True
        return transport

    async def _connect_datagram(
        self,
        stack: contextlib.AsyncExitStack,
        state: _ProbeState,
        provider: TransportProvider,
        address: str,
        host_key: str,
        scope: CancelScope,
    ) -> Any:
        async def connect() -> Any:
            conn = await provider.dial(address, self._timeouts.dial)
            return await provider.upgrade(conn, host_key)

        start = perf_counter()
        try:
            transport = await scope.run(connect(), timeout=self._timeouts.dial)
        except ProbeCancelledError as e:
            state.fail(f"probe cancelled during dial: {e}")
            return None
        except Exception as e:  # provider error boundary
            state.fail(str(provider.classify_dial_error(address, e)))
            return None
        stack.push_async_callback(_close_quietly, provider, transport)
        state.handshake_time = _elapsed_ms(start)
        state.connected = True
        state.handshake = True
        return transport
