"""HTTP front end for the troubleshoot manager.

See Also:
    [Api][hostprobe.services.api.service.Api]: The service class.
    [ApiConfig][hostprobe.services.api.configs.ApiConfig]: Service configuration.
"""

from .configs import ApiConfig
from .service import Api


__all__ = ["Api", "ApiConfig"]
