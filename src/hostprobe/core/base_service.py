"""
Cycle-driven service base for the HostProbe server.

A service is an ``async with`` context that owns its resources plus a
periodic [run()][hostprobe.core.base_service.BaseService.run] cycle.
[Api][hostprobe.services.api.Api] uses the cycle to check its HTTP server
task and fold the request tallies since the last cycle into Prometheus
counters; the cycle is never on the request path.

The CLI drives it as::

    async with Api.from_dict(load_yaml("config/api.yaml")) as service:
        await service.run_forever()
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field

from .logger import Logger
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
)
from .yaml import load_yaml


if TYPE_CHECKING:
    from types import TracebackType

    from hostprobe.models.constants import ServiceName


class BaseServiceConfig(BaseModel):
    """Cycle timing, failure budget, and the embedded metrics endpoint."""

    interval: float = Field(
        default=60.0,
        ge=1.0,
        description="Seconds to sleep between two run() cycles",
    )
    max_consecutive_failures: int = Field(
        default=5,
        ge=0,
        description="Failed cycles in a row before run_forever() gives up; 0 never gives up",
    )
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


ConfigT = TypeVar("ConfigT", bound=BaseServiceConfig)


class BaseService(ABC, Generic[ConfigT]):
    """A configured service with a shutdown event and a periodic cycle.

    Subclasses name themselves with ``SERVICE_NAME`` (the logger name and
    the ``service`` metric label), declare ``CONFIG_CLASS`` for the
    factories, and implement ``run()``. Resources are acquired in
    ``__aenter__`` and released in ``__aexit__``; both must call ``super()``.
    """

    SERVICE_NAME: ClassVar[ServiceName]
    CONFIG_CLASS: ClassVar[type[BaseModel]]

    def __init__(self, config: ConfigT | None = None) -> None:
        if config is None:
            config = cast("ConfigT", self.CONFIG_CLASS())
        self._config: ConfigT = config
        self._logger = Logger(self.SERVICE_NAME)
        self._shutdown_event = asyncio.Event()

    @classmethod
    def from_yaml(cls, config_path: str, **kwargs: Any) -> Self:
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> Self:
        """Validate *data* as ``CONFIG_CLASS``; *kwargs* go to the constructor."""
        return cls(config=cast("ConfigT", cls.CONFIG_CLASS(**data)), **kwargs)

    @property
    def config(self) -> ConfigT:
        return self._config

    @property
    def is_running(self) -> bool:
        return not self._shutdown_event.is_set()

    def request_shutdown(self) -> None:
        """Stop after the current cycle. Safe to call from a signal handler."""
        self._shutdown_event.set()

    async def wait(self, timeout: float) -> bool:  # noqa: ASYNC109
        """Sleep for *timeout* seconds; return ``True`` early on shutdown."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    async def __aenter__(self) -> Self:
        self._shutdown_event.clear()
        self._logger.info("service_started")
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        self._shutdown_event.set()
        self._logger.info("service_stopped")

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    @abstractmethod
    async def run(self) -> None:
        """One bounded cycle. Raising counts as a failed cycle."""

    async def run_forever(self) -> None:
        """Cycle until shutdown or until the failure budget is spent.

        A failed cycle is logged and counted (``cycles_failed`` plus
        ``errors_<ExceptionType>``); a successful one resets the streak.
        Cancellation and interpreter exit are never treated as failures.
        """
        budget = self._config.max_consecutive_failures
        if self._config.metrics.enabled:
            SERVICE_INFO.info({"service": str(self.SERVICE_NAME)})
        self._logger.info(
            "run_forever_started", interval=self._config.interval, max_consecutive_failures=budget
        )

        streak = 0
        while self.is_running:
            streak = 0 if await self._cycle() else streak + 1
            self.set_gauge("consecutive_failures", streak)
            if 0 < budget <= streak:
                self._logger.critical(
                    "max_consecutive_failures_reached", failures=streak, limit=budget
                )
                break
            if await self.wait(self._config.interval):
                break

        self._logger.info("run_forever_stopped")

    async def _cycle(self) -> bool:
        started = time.monotonic()
        try:
            await self.run()
        except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
            raise
        except Exception as e:  # top-level error boundary for one cycle
            self.inc_counter("cycles_failed")
            self.inc_counter(f"errors_{type(e).__name__}")
            self._logger.error("run_cycle_error", error=str(e), error_type=type(e).__name__)
            return False

        if self._config.metrics.enabled:
            CYCLE_DURATION_SECONDS.labels(service=self.SERVICE_NAME).observe(
                time.monotonic() - started
            )
        self.inc_counter("cycles_success")
        self.set_gauge("last_cycle_timestamp", time.time())
        return True

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def set_gauge(self, name: str, value: float) -> None:
        if self._config.metrics.enabled:
            SERVICE_GAUGE.labels(service=self.SERVICE_NAME, name=name).set(value)

    def inc_counter(self, name: str, value: float = 1) -> None:
        """Add *value* to the ``name`` counter; nothing when metrics are off."""
        if self._config.metrics.enabled:
            SERVICE_COUNTER.labels(service=self.SERVICE_NAME, name=name).inc(value)
