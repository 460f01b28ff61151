"""Result models produced by the probe pipeline and the manager.

A [ProtocolTestResult][hostprobe.rhp.results.ProtocolTestResult] records how
far one probe got. Stage flags cascade: a later stage can only be marked
complete if every earlier one is, and settings are only present after a
successful scan. Durations are whole milliseconds and stay ``0`` for
stages that were never reached.

An [AggregateResult][hostprobe.rhp.results.AggregateResult] bundles the
per-variant results of one test call. Both serialize to camelCase JSON via
``to_dict()``.
"""

from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .settings import Rhp2Settings, Rhp3PriceTable, Rhp4Settings


class _ResultModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ProtocolTestResult(_ResultModel):
    """Outcome of one probe against one (address, variant) pair.

    Attributes:
        variant: Transport variant probed; the raw tag when the submitted
            protocol is unknown.
        address: ``host:port`` the probe targeted (empty if none could be
            derived).
        resolved_addresses: Every IP literal the resolver returned, kept
            regardless of later stage outcomes.
        connected: Dial succeeded.
        dial_time: Dial duration in milliseconds.
        handshake: Transport upgrade succeeded.
        handshake_time: Upgrade duration in milliseconds. For datagram
            transports this covers the combined dial and handshake.
        scanned: Settings query succeeded and decoded.
        scan_time: Settings query duration in milliseconds.
        settings: Decoded settings payload, present only when scanned.
        errors: Fatal findings, in the order they occurred.
        warnings: Heuristic findings from validation.
    """

    variant: str
    address: str = ""
    resolved_addresses: list[str] = Field(default_factory=list)
    connected: bool = False
    dial_time: int = Field(default=0, ge=0)
    handshake: bool = False
    handshake_time: int = Field(default=0, ge=0)
    scanned: bool = False
    scan_time: int = Field(default=0, ge=0)
    settings: Rhp2Settings | Rhp3PriceTable | Rhp4Settings | None = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_stage_cascade(self) -> Self:
        if self.handshake and not self.connected:
            raise ValueError("handshake cannot complete without a connection")
        if self.scanned and not self.handshake:
            raise ValueError("scan cannot complete without a handshake")
        if self.settings is not None and not self.scanned:
            raise ValueError("settings are only present after a successful scan")
        return self

    @property
    def release(self) -> str | None:
        """The release string reported in the settings, if any."""
        if self.settings is None:
            return None
        return getattr(self.settings, "release", None)

    def with_error(self, message: str) -> ProtocolTestResult:
        """Return a copy with *message* appended to ``errors``."""
        return self.model_copy(update={"errors": [*self.errors, message]})

    @classmethod
    def failed(cls, variant: str, address: str, message: str) -> ProtocolTestResult:
        """A result for a probe that was rejected before its first stage."""
        return cls(variant=variant, address=address, errors=[message])


class AggregateResult(_ResultModel):
    """All probe results of one test call.

    Attributes:
        public_key: Canonical key of the tested host.
        version: Release reported by the preferred successful probe; empty
            if no probe returned settings.
        rhp2: Generation 2 result; ``None`` once legacy probing is disabled
            or when the host announces no legacy address.
        rhp3: Generation 3 result; ``None`` unless the generation 2 scan
            returned settings.
        rhp4: One result per submitted RHP4 address, in submission order.
    """

    public_key: str
    version: str = ""
    rhp2: ProtocolTestResult | None = None
    rhp3: ProtocolTestResult | None = None
    rhp4: list[ProtocolTestResult] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with ``rhp2``/``rhp3`` omitted when not applicable."""
        data = super().to_dict()
        for key in ("rhp2", "rhp3"):
            if data[key] is None:
                del data[key]
        return data

    def results(self) -> list[ProtocolTestResult]:
        """Every present result, legacy generations first."""
        legacy = [r for r in (self.rhp2, self.rhp3) if r is not None]
        return [*legacy, *self.rhp4]
