"""Host troubleshooting: concurrent protocol probes with cooldowns and cached chain state.

See Also:
    [TroubleshootManager][hostprobe.services.troubleshoot.manager.TroubleshootManager]:
        The orchestrator.
    [ManagerConfig][hostprobe.services.troubleshoot.configs.ManagerConfig]:
        Its configuration.
"""

from .configs import DnsConfig, ManagerConfig, RefreshConfig, TimeoutsConfig
from .manager import StateSnapshot, TroubleshootManager
from .utils import OnceValue, load_provider


__all__ = [
    "DnsConfig",
    "ManagerConfig",
    "OnceValue",
    "RefreshConfig",
    "StateSnapshot",
    "TimeoutsConfig",
    "TroubleshootManager",
    "load_provider",
]
