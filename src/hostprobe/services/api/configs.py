"""API service configuration models.

See Also:
    [Api][hostprobe.services.api.Api]: The service class that consumes
        these configurations.
    [BaseServiceConfig][hostprobe.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures``,
        and ``metrics`` fields.
"""

from __future__ import annotations

from pydantic import Field, model_validator

from hostprobe.core.base_service import BaseServiceConfig
from hostprobe.services.troubleshoot.configs import ManagerConfig  # noqa: TC001 (Pydantic runtime)


class ApiConfig(BaseServiceConfig):
    """Configuration for the API service.

    Attributes:
        host: Bind address for the HTTP server.
        port: Port for the HTTP server.
        request_timeout: Deadline in seconds for one ``/troubleshoot`` call,
            covering every probe it launches.
        cors_origins: Allowed CORS origins. Empty list disables CORS.
        manager: Configuration of the embedded
            [TroubleshootManager][hostprobe.services.troubleshoot.TroubleshootManager].
    """

    host: str = Field(default="0.0.0.0", min_length=1, description="HTTP bind address")  # noqa: S104
    port: int = Field(default=8080, ge=1, le=65535, description="HTTP port")
    request_timeout: float = Field(default=30.0, ge=1.0, le=600.0)
    cors_origins: list[str] = Field(default_factory=list)
    manager: ManagerConfig = Field(default_factory=ManagerConfig)

    @model_validator(mode="after")
    def _validate_request_timeout(self) -> ApiConfig:
        if self.manager.dns.timeout > self.request_timeout:
            msg = (
                f"manager.dns.timeout ({self.manager.dns.timeout}) "
                f"must not exceed request_timeout ({self.request_timeout})"
            )
            raise ValueError(msg)
        return self
