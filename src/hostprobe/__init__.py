r"""HostProbe -- storage host troubleshooting service.

Tests a storage host the way a renter would reach it: resolve each
announced address, dial it over the matching transport, complete the
protocol handshake, fetch the host's settings, and validate them against
the current chain tip and the latest release. Every protocol generation the
host announces is probed concurrently and reported side by side.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Manager orchestration and HTTP API
             /   |   \
          core  rhp  utils     Infrastructure, probe pipeline, and I/O helpers
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Versions, hosts, chain state, transport enums. Zero I/O.
    core: Exceptions, logging, metrics, base service, cancel scopes.
    rhp: Settings payloads, validation checks, transports, the probe
        pipeline, and result models.
    utils: DNS resolution, bounded HTTP JSON, explorer and release clients.
    services: The troubleshoot manager and the API service.

Note:
    Top-level imports (``from hostprobe import TroubleshootManager``) use
    lazy loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("hostprobe")

__all__ = [
    "AggregateResult",
    "Api",
    "ApiConfig",
    "BaseService",
    "CancelScope",
    "Host",
    "Logger",
    "ManagerConfig",
    "NetAddress",
    "ProbePipeline",
    "ProtocolTestResult",
    "SemVer",
    "TransportVariant",
    "TroubleshootManager",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("hostprobe.core", "BaseService"),
    "CancelScope": ("hostprobe.core", "CancelScope"),
    "Logger": ("hostprobe.core", "Logger"),
    "Host": ("hostprobe.models", "Host"),
    "NetAddress": ("hostprobe.models", "NetAddress"),
    "SemVer": ("hostprobe.models", "SemVer"),
    "TransportVariant": ("hostprobe.models", "TransportVariant"),
    "AggregateResult": ("hostprobe.rhp", "AggregateResult"),
    "ProbePipeline": ("hostprobe.rhp", "ProbePipeline"),
    "ProtocolTestResult": ("hostprobe.rhp", "ProtocolTestResult"),
    "Api": ("hostprobe.services", "Api"),
    "ApiConfig": ("hostprobe.services", "ApiConfig"),
    "ManagerConfig": ("hostprobe.services", "ManagerConfig"),
    "TroubleshootManager": ("hostprobe.services", "TroubleshootManager"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'hostprobe' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
