"""Core layer providing the foundation for all HostProbe components.

Sits in the middle of the layer stack: depends only on
``hostprobe.models`` and is depended upon by ``hostprobe.rhp``,
``hostprobe.utils`` and ``hostprobe.services``.

Attributes:
    BaseService: Abstract generic base class with lifecycle management
        ([run()][hostprobe.core.base_service.BaseService.run] /
        [run_forever()][hostprobe.core.base_service.BaseService.run_forever] /
        shutdown), factory methods, and Prometheus metrics integration.
    CancelScope: Cancel signal plus deadline shared by a test run and its
        probes. See [CancelScope][hostprobe.core.context.CancelScope].
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][hostprobe.core.logger.Logger].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
        See [MetricsServer][hostprobe.core.metrics.MetricsServer].
    YAML: Safe YAML loading with ``yaml.safe_load()``.
        See [load_yaml()][hostprobe.core.yaml.load_yaml].

See Also:
    [hostprobe.models][hostprobe.models]: Pure dataclass models consumed by this layer.
    [hostprobe.services][hostprobe.services]: Components built on this layer.
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .context import CancelScope
from .exceptions import (
    ConfigurationError,
    CooldownError,
    FormatError,
    HostProbeError,
    ShutdownError,
    TransportError,
    UpstreamError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    PROBE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "PROBE_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "CancelScope",
    "ConfigT",
    "ConfigurationError",
    "CooldownError",
    "FormatError",
    "HostProbeError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "ShutdownError",
    "StructuredFormatter",
    "TransportError",
    "UpstreamError",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
