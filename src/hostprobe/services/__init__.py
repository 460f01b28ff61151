"""Service layer: the troubleshoot manager and the HTTP API that serves it.

Attributes:
    TroubleshootManager: Runs host tests. See
        [TroubleshootManager][hostprobe.services.troubleshoot.TroubleshootManager].
    Api: FastAPI/uvicorn service exposing ``POST /troubleshoot``. See
        [Api][hostprobe.services.api.Api].
"""

from .api import Api, ApiConfig
from .troubleshoot import ManagerConfig, TroubleshootManager


__all__ = ["Api", "ApiConfig", "ManagerConfig", "TroubleshootManager"]
