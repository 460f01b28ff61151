"""
Unit tests for rhp.results module.

Tests:
- ProtocolTestResult stage cascade validation
- camelCase serialization and optional legacy fields
- failed() / with_error() helpers
"""

import pytest
from pydantic import ValidationError

from hostprobe.rhp.results import AggregateResult, ProtocolTestResult
from hostprobe.rhp.settings import Rhp4Settings


class TestProtocolTestResult:
    """Tests for ProtocolTestResult."""

    def test_defaults(self) -> None:
        result = ProtocolTestResult(variant="quic")
        assert not result.connected
        assert result.dial_time == 0
        assert result.settings is None
        assert result.release is None

    def test_handshake_requires_connection(self) -> None:
        with pytest.raises(ValidationError):
            ProtocolTestResult(variant="quic", handshake=True)

    def test_scan_requires_handshake(self) -> None:
        with pytest.raises(ValidationError):
            ProtocolTestResult(variant="quic", connected=True, scanned=True)

    def test_settings_require_scan(self) -> None:
        with pytest.raises(ValidationError):
            ProtocolTestResult(
                variant="quic", connected=True, handshake=True, settings=Rhp4Settings()
            )

    def test_negative_duration_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ProtocolTestResult(variant="quic", dial_time=-1)

    def test_release(self) -> None:
        result = ProtocolTestResult(
            variant="siamux",
            connected=True,
            handshake=True,
            scanned=True,
            settings=Rhp4Settings(release="v1.6.0"),
        )
        assert result.release == "v1.6.0"

    def test_to_dict_camel_case(self) -> None:
        data = ProtocolTestResult(
            variant="siamux",
            address="h:9984",
            resolved_addresses=["203.0.113.7"],
            connected=True,
            dial_time=12,
            errors=["boom"],
        ).to_dict()
        assert data["resolvedAddresses"] == ["203.0.113.7"]
        assert data["dialTime"] == 12
        assert data["handshakeTime"] == 0
        assert data["scanTime"] == 0
        assert data["settings"] is None
        assert data["errors"] == ["boom"]
        assert data["warnings"] == []

    def test_failed(self) -> None:
        result = ProtocolTestResult.failed("quic", "h:1", 'duplicate protocol "quic"')
        assert result.errors == ['duplicate protocol "quic"']
        assert result.address == "h:1"
        assert not result.connected

    def test_with_error_copies(self) -> None:
        original = ProtocolTestResult(variant="quic", errors=["a"])
        updated = original.with_error("b")
        assert updated.errors == ["a", "b"]
        assert original.errors == ["a"]


class TestAggregateResult:
    """Tests for AggregateResult."""

    def test_omits_inapplicable_legacy(self) -> None:
        data = AggregateResult(
            public_key="ed25519:" + "ab" * 32,
            version="v1.6.0",
            rhp4=[ProtocolTestResult(variant="quic")],
        ).to_dict()
        assert "rhp2" not in data
        assert "rhp3" not in data
        assert data["publicKey"] == "ed25519:" + "ab" * 32
        assert data["version"] == "v1.6.0"
        assert len(data["rhp4"]) == 1

    def test_keeps_present_legacy(self) -> None:
        aggregate = AggregateResult(
            public_key="k",
            rhp2=ProtocolTestResult(variant="rhp2"),
            rhp3=ProtocolTestResult(variant="rhp3"),
        )
        data = aggregate.to_dict()
        assert data["rhp2"]["variant"] == "rhp2"
        assert data["rhp3"]["variant"] == "rhp3"
        assert [r.variant for r in aggregate.results()] == ["rhp2", "rhp3"]

    def test_results_order(self) -> None:
        aggregate = AggregateResult(
            public_key="k",
            rhp2=ProtocolTestResult(variant="rhp2"),
            rhp4=[ProtocolTestResult(variant="siamux"), ProtocolTestResult(variant="quic")],
        )
        assert [r.variant for r in aggregate.results()] == ["rhp2", "siamux", "quic"]
