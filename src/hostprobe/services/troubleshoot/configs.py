"""Troubleshoot manager configuration models.

See Also:
    [TroubleshootManager][hostprobe.services.troubleshoot.TroubleshootManager]:
        The component that consumes these configurations.
    [ExplorerConfig][hostprobe.utils.explorer.ExplorerConfig] and
    [ReleaseConfig][hostprobe.utils.releases.ReleaseConfig]: External
        state sources embedded below.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from hostprobe.core.metrics import MetricsConfig
from hostprobe.models.constants import TransportVariant
from hostprobe.rhp.pipeline import StageTimeouts
from hostprobe.utils.dns import DEFAULT_FALLBACK_SERVER, DEFAULT_MAX_DEPTH, DEFAULT_QUERY_TIMEOUT
from hostprobe.utils.explorer import ExplorerConfig
from hostprobe.utils.releases import ReleaseConfig


class RefreshConfig(BaseModel):
    """Background refresh intervals for the cached external state.

    The tip moves every block, the latest release rarely, hence the two
    independent timers.
    """

    tip_interval: float = Field(default=60.0, ge=1.0, description="Seconds between tip refreshes")
    release_interval: float = Field(
        default=900.0, ge=1.0, description="Seconds between release refreshes"
    )


class TimeoutsConfig(BaseModel):
    """Per-stage probe timeouts in seconds."""

    dial: float = Field(default=120.0, gt=0.0, le=600.0)
    handshake: float = Field(default=30.0, gt=0.0, le=300.0)
    scan: float = Field(default=30.0, gt=0.0, le=300.0)

    def to_stage_timeouts(self) -> StageTimeouts:
        return StageTimeouts(dial=self.dial, handshake=self.handshake, scan=self.scan)


class DnsConfig(BaseModel):
    """Fallback resolver settings used when the system resolver fails."""

    fallback_server: str = Field(default=DEFAULT_FALLBACK_SERVER, min_length=1)
    timeout: float = Field(default=DEFAULT_QUERY_TIMEOUT, gt=0.0, le=60.0)
    max_cname_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0, le=10)


class ManagerConfig(BaseModel):
    """Configuration for the [TroubleshootManager][hostprobe.services.troubleshoot.TroubleshootManager].

    Attributes:
        cooldown: Minimum seconds between two tests of the same host key.
        test_timeout: Default deadline for a whole test call.
        transports: ``module:attribute`` import path of the provider for
            each transport variant. Variants left out report a per-probe
            error.
    """

    cooldown: float = Field(default=10.0, gt=0.0, le=3600.0)
    test_timeout: float = Field(default=30.0, gt=0.0, le=600.0)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    dns: DnsConfig = Field(default_factory=DnsConfig)
    explorer: ExplorerConfig = Field(default_factory=ExplorerConfig)
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)
    transports: dict[TransportVariant, str] = Field(default_factory=dict)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("transports")
    @classmethod
    def _validate_import_paths(cls, v: dict[TransportVariant, str]) -> dict[TransportVariant, str]:
        for variant, path in v.items():
            module, sep, attr = path.partition(":")
            if not sep or not module or not attr:
                raise ValueError(f"transports.{variant}: expected 'module:attribute', got {path!r}")
        return v

    @model_validator(mode="after")
    def _validate_timeouts(self) -> ManagerConfig:
        if self.dns.timeout > self.test_timeout:
            raise ValueError(
                f"dns.timeout ({self.dns.timeout}) must not exceed test_timeout ({self.test_timeout})"
            )
        return self
