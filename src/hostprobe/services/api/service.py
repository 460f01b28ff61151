"""HTTP API service exposing host troubleshooting via FastAPI.

The HTTP server runs as a background ``asyncio.Task`` alongside the
standard ``run_forever()`` cycle. Each ``run()`` cycle checks the server
task, logs request statistics, and updates Prometheus counters.

Routes:
    ``GET /health``: Liveness probe.
    ``GET /state``: Build and runtime information.
    ``POST /troubleshoot``: Test the host described in the JSON body and
        return its [AggregateResult][hostprobe.rhp.results.AggregateResult].

See Also:
    [TroubleshootManager][hostprobe.services.troubleshoot.TroubleshootManager]:
        Does the actual testing.
    [BaseService][hostprobe.core.base_service.BaseService]: Abstract
        base class providing lifecycle and metrics.
"""

from __future__ import annotations

import asyncio
import contextlib
import math
import platform
import time
from datetime import UTC, datetime
from importlib.metadata import version as _get_version
from typing import TYPE_CHECKING, Any, ClassVar

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hostprobe.core.base_service import BaseService
from hostprobe.core.exceptions import CooldownError, FormatError, ShutdownError
from hostprobe.models.constants import ServiceName
from hostprobe.models.host import Host
from hostprobe.services.troubleshoot.manager import TroubleshootManager

from .configs import ApiConfig


if TYPE_CHECKING:
    from types import TracebackType

_HTTP_ERROR_THRESHOLD = 400


class Api(BaseService[ApiConfig]):
    """HTTP service wrapping one [TroubleshootManager][hostprobe.services.troubleshoot.TroubleshootManager].

    Lifecycle:
        1. ``__aenter__``: start the manager, build the FastAPI app, start uvicorn.
        2. ``run()``: log statistics and update Prometheus counters.
        3. ``__aexit__``: stop the HTTP server, then shut the manager down.

    Args:
        config: Service configuration; defaults if omitted.
        manager: Manager to serve. When omitted one is built from
            ``config.manager`` and owned (started and shut down) by the
            service.

    Note:
        Rate limiting beyond the per-host cooldown is handled at the
        reverse proxy layer.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.API
    CONFIG_CLASS: ClassVar[type[ApiConfig]] = ApiConfig

    def __init__(
        self, config: ApiConfig | None = None, *, manager: TroubleshootManager | None = None
    ) -> None:
        super().__init__(config)
        self._owns_manager = manager is None
        self._manager = manager or TroubleshootManager(self._config.manager)
        self._server_task: asyncio.Task[None] | None = None
        self._started_at = datetime.now(UTC)
        self._requests_total = 0
        self._requests_failed = 0
        self._hosts_tested = 0

    @property
    def manager(self) -> TroubleshootManager:
        return self._manager

    async def __aenter__(self) -> Api:
        await super().__aenter__()
        if self._owns_manager:
            await self._manager.start()

        app = self.build_app()
        self._server_task = asyncio.create_task(self._run_server(app))
        self._logger.info(
            "http_server_started",
            host=self._config.host,
            port=self._config.port,
        )
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        if self._server_task is not None:
            self._server_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._server_task
            self._server_task = None
        self._logger.info("http_server_stopped")
        if self._owns_manager:
            await self._manager.shutdown()
        await super().__aexit__(_exc_type, _exc_val, _exc_tb)

    async def run(self) -> None:
        """Log request stats and update Prometheus counters."""
        if self._server_task is not None and self._server_task.done():
            exc = self._server_task.exception() if not self._server_task.cancelled() else None
            self._logger.error("http_server_crashed", error=str(exc) if exc else "cancelled")
            raise RuntimeError("HTTP server task has stopped unexpectedly") from exc

        # Snapshot and reset per-cycle counters
        total = self._requests_total
        failed = self._requests_failed
        tested = self._hosts_tested
        self._requests_total = 0
        self._requests_failed = 0
        self._hosts_tested = 0

        self._logger.info(
            "cycle_stats",
            requests_total=total,
            requests_failed=failed,
            hosts_tested=tested,
        )
        self.inc_counter("requests_total", total)
        self.inc_counter("requests_failed", failed)
        self.inc_counter("hosts_tested", tested)

    def state(self) -> dict[str, str]:
        """Build and runtime information reported by ``GET /state``."""
        return {
            "version": _get_version("hostprobe"),
            "os": platform.system().lower(),
            "pythonVersion": platform.python_version(),
            "startedAt": self._started_at.isoformat(),
        }

    def build_app(self) -> FastAPI:
        """Construct the FastAPI application."""
        app = FastAPI(title="HostProbe API")

        if self._config.cors_origins:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=self._config.cors_origins,
                allow_methods=["GET", "POST"],
                allow_headers=["*"],
            )

        # Request logging middleware
        @app.middleware("http")
        async def log_requests(request: Request, call_next: Any) -> Response:
            start = time.monotonic()
            try:
                response: Response = await call_next(request)
            except Exception as exc:  # HTTP request error boundary
                self._logger.exception(
                    "unhandled_error",
                    error=str(exc),
                    path=request.url.path,
                )
                response = JSONResponse(
                    {"error": "Internal server error"},
                    status_code=500,
                )
            duration_ms = (time.monotonic() - start) * 1000
            self._requests_total += 1
            if response.status_code >= _HTTP_ERROR_THRESHOLD:
                self._requests_failed += 1
                self._logger.warning(
                    "request_failed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=round(duration_ms, 1),
                )
            else:
                self._logger.debug(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=round(duration_ms, 1),
                )
            return response

        @app.get("/health")
        async def health() -> dict[str, str]:
            return {"status": "ok"}

        @app.get("/state")
        async def get_state() -> dict[str, str]:
            return self.state()

        @app.post("/troubleshoot")
        async def troubleshoot(request: Request) -> JSONResponse:
            try:
                body = await request.json()
            except ValueError:
                return JSONResponse({"error": "request body must be JSON"}, status_code=422)
            if not isinstance(body, dict):
                return JSONResponse({"error": "request body must be an object"}, status_code=422)
            try:
                host = Host.from_dict(body)
            except (FormatError, TypeError, ValueError) as e:
                return JSONResponse({"error": f"invalid host: {e}"}, status_code=422)

            try:
                result = await self._manager.test_host(host, timeout=self._config.request_timeout)
            except CooldownError as e:
                retry_after = max(1, math.ceil(e.remaining))
                return JSONResponse(
                    {"error": str(e), "retryAfter": retry_after},
                    status_code=429,
                    headers={"Retry-After": str(retry_after)},
                )
            except ShutdownError as e:
                return JSONResponse({"error": str(e)}, status_code=503)

            self._hosts_tested += 1
            return JSONResponse(result.to_dict())

        return app

    async def _run_server(self, app: FastAPI) -> None:
        """Run uvicorn as an asyncio server."""
        config = uvicorn.Config(
            app,
            host=self._config.host,
            port=self._config.port,
            log_level="warning",
            access_log=False,
        )
        server = uvicorn.Server(config)
        await server.serve()
