"""
Prometheus metrics collection and HTTP exposition.

Metric objects are module-level singletons shared by every component.
[BaseService.run_forever()][hostprobe.core.base_service.BaseService.run_forever]
records cycle counts and durations automatically; the manager records one
``PROBE_DURATION_SECONDS`` observation per finished probe.

Architecture:
    SERVICE_INFO:               Static metadata set once at startup.
    SERVICE_GAUGE:              Point-in-time values (cached tip height, ...).
    SERVICE_COUNTER:            Cumulative totals (requests, probe errors, ...).
    CYCLE_DURATION_SECONDS:     Service cycle latency histogram.
    PROBE_DURATION_SECONDS:     End-to-end probe latency per transport variant.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint is only started when ``enabled`` is True. Bind ``host`` to
    ``"0.0.0.0"`` in containers so the scraper can reach it.
    """

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=9100, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


SERVICE_INFO = Info(
    "hostprobe_service",
    "Service information and metadata",
)

CYCLE_DURATION_SECONDS = Histogram(
    "hostprobe_cycle_duration_seconds",
    "Duration of service cycle in seconds",
    ["service"],
    buckets=(1, 5, 10, 30, 60, 120, 300, 600),
)

# Dial timeouts run up to two minutes, hence the long tail.
PROBE_DURATION_SECONDS = Histogram(
    "hostprobe_probe_duration_seconds",
    "Duration of one protocol probe in seconds",
    ["variant"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120),
)

SERVICE_GAUGE = Gauge(
    "hostprobe_service_gauge",
    "Service gauge values (point-in-time state)",
    ["service", "name"],
)

SERVICE_COUNTER = Counter(
    "hostprobe_service_counter",
    "Service counter values (cumulative totals)",
    ["service", "name"],
)


class MetricsServer:
    """Async aiohttp server exposing the Prometheus ``/metrics`` endpoint.

    Usable directly or as an async context manager:

        async with MetricsServer(MetricsConfig(enabled=True)):
            await service.run_forever()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def is_serving(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Bind the configured host and port; no-op when metrics are disabled.

        Raises:
            OSError: If the port is already in use.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        await web.TCPSite(runner, self._config.host, self._config.port).start()
        self._runner = runner

    async def stop(self) -> None:
        """Release the bound port. Idempotent."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    async def __aenter__(self) -> MetricsServer:
        await self.start()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.stop()

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a [MetricsServer][hostprobe.core.metrics.MetricsServer].

    The caller owns the returned server and must ``stop()`` it on shutdown.
    """
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
