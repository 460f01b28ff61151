"""Tests for lazy import system in hostprobe.__init__."""

from __future__ import annotations

import subprocess
import sys

import pytest


class TestLazyImports:
    """Test PEP 562 lazy loading in hostprobe.__init__."""

    def test_lazy_import_does_not_eagerly_load(self) -> None:
        """Importing hostprobe alone loads no subpackage."""
        code = (
            "import sys, hostprobe; "
            "print(sorted(m for m in sys.modules if m.startswith('hostprobe.')))"
        )
        out = subprocess.run(
            [sys.executable, "-c", code], capture_output=True, text=True, check=True
        ).stdout
        assert out.strip() == "[]"

    def test_lazy_import_resolves_on_access(self) -> None:
        from hostprobe import TroubleshootManager
        from hostprobe.services.troubleshoot.manager import TroubleshootManager as Direct

        assert TroubleshootManager is Direct

    def test_lazy_import_caches_after_first_access(self) -> None:
        import hostprobe

        _ = hostprobe.Host
        assert "Host" in vars(hostprobe)

    def test_lazy_import_invalid_attribute(self) -> None:
        import hostprobe

        with pytest.raises(AttributeError, match="no_such_thing"):
            _ = hostprobe.no_such_thing

    def test_dir_lists_public_api(self) -> None:
        import hostprobe

        assert "ProbePipeline" in dir(hostprobe)
        assert isinstance(hostprobe.__version__, str)
