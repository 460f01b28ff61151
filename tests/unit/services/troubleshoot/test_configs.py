"""Unit tests for services.troubleshoot.configs module."""

import pytest
from pydantic import ValidationError

from hostprobe.models.constants import TransportVariant
from hostprobe.rhp.pipeline import StageTimeouts
from hostprobe.services.troubleshoot import DnsConfig, ManagerConfig, TimeoutsConfig


class TestManagerConfig:
    """Tests for ManagerConfig."""

    def test_defaults(self) -> None:
        config = ManagerConfig()
        assert config.cooldown == 10.0
        assert config.test_timeout == 30.0
        assert config.refresh.tip_interval == 60.0
        assert config.transports == {}
        assert not config.metrics.enabled

    def test_nested_from_dict(self) -> None:
        config = ManagerConfig(
            cooldown=2,
            dns={"fallback_server": "9.9.9.9:53", "max_cname_depth": 5},
            transports={"siamux": "mypkg.providers:SiaMux"},
        )
        assert config.dns.fallback_server == "9.9.9.9:53"
        assert config.dns.max_cname_depth == 5
        assert config.transports == {TransportVariant.SIAMUX: "mypkg.providers:SiaMux"}

    def test_rejects_unknown_variant(self) -> None:
        with pytest.raises(ValidationError):
            ManagerConfig(transports={"carrier-pigeon": "a:b"})

    @pytest.mark.parametrize("path", ["no_colon", ":attr", "module:"])
    def test_rejects_bad_import_path(self, path: str) -> None:
        with pytest.raises(ValidationError, match="expected 'module:attribute'"):
            ManagerConfig(transports={"quic": path})

    def test_dns_timeout_bounded_by_test_timeout(self) -> None:
        with pytest.raises(ValidationError, match="must not exceed test_timeout"):
            ManagerConfig(test_timeout=2, dns=DnsConfig(timeout=5))

    def test_rejects_zero_cooldown(self) -> None:
        with pytest.raises(ValidationError):
            ManagerConfig(cooldown=0)


class TestTimeoutsConfig:
    """Tests for TimeoutsConfig."""

    def test_to_stage_timeouts(self) -> None:
        timeouts = TimeoutsConfig(dial=5, handshake=3, scan=2).to_stage_timeouts()
        assert timeouts == StageTimeouts(dial=5, handshake=3, scan=2)
