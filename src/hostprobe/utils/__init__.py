"""DNS resolution and HTTP clients for external state.

The utils layer depends only on [hostprobe.models][hostprobe.models] and the
core exception types. It is consumed by
[hostprobe.services][hostprobe.services].

Attributes:
    dns: System resolver with a direct, cache-bypassing UDP fallback and
        bounded CNAME recursion.
    http: Size-bounded JSON fetching on ``aiohttp``.
    explorer: Consensus state client (tip height, hard-fork heights).
    releases: Latest known-good release lookup.

Examples:
    ```python
    from hostprobe.utils.dns import lookup_ips
    from hostprobe.utils.explorer import ExplorerClient, ExplorerConfig
    ```
"""

from .dns import lookup_ips, query_records, resolve_direct
from .explorer import ExplorerClient, ExplorerConfig
from .http import fetch_json, read_bounded_json
from .releases import ReleaseClient, ReleaseConfig


__all__ = [
    "ExplorerClient",
    "ExplorerConfig",
    "ReleaseClient",
    "ReleaseConfig",
    "fetch_json",
    "lookup_ips",
    "query_records",
    "read_bounded_json",
    "resolve_direct",
]
