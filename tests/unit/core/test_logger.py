"""
Unit tests for core.logger module.

Tests:
- format_kv_pairs() quoting and truncation
- StructuredFormatter rendering of Logger and plain logging records
- Logger levels, bind(), and JSON output
"""

import json
import logging

import pytest

from hostprobe.core.logger import Logger, StructuredFormatter, format_kv_pairs


# ============================================================================
# format_kv_pairs Tests
# ============================================================================


class TestFormatKvPairs:
    """Tests for format_kv_pairs()."""

    def test_empty(self) -> None:
        assert format_kv_pairs({}) == ""

    def test_simple_values(self) -> None:
        assert format_kv_pairs({"variant": "quic", "probes": 2}) == " variant=quic probes=2"

    def test_quotes_values_with_spaces(self) -> None:
        assert format_kv_pairs({"error": "timed out"}) == ' error="timed out"'

    def test_escapes_quotes(self) -> None:
        assert format_kv_pairs({"error": 'bad "x"'}) == ' error="bad \\"x\\""'

    def test_quotes_empty_value(self) -> None:
        assert format_kv_pairs({"version": ""}) == ' version=""'

    def test_truncates(self) -> None:
        result = format_kv_pairs({"k": "x" * 20}, max_value_length=5)
        assert result == ' k="xxxxx...<truncated 15 chars>"'

    def test_no_truncation_when_disabled(self) -> None:
        assert format_kv_pairs({"k": "x" * 20}, max_value_length=None) == " k=" + "x" * 20

    def test_custom_prefix(self) -> None:
        assert format_kv_pairs({"a": 1}, prefix="") == "a=1"


# ============================================================================
# StructuredFormatter Tests
# ============================================================================


def _record(msg: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("hostprobe.rhp", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_plain_record(self) -> None:
        line = StructuredFormatter().format(_record("probe_finished variant=quic"))
        assert line == "info hostprobe.rhp probe_finished variant=quic"

    def test_structured_record(self) -> None:
        line = StructuredFormatter().format(
            _record("host_tested", structured_kv={"probes": "2"})
        )
        assert line == "info hostprobe.rhp host_tested probes=2"


# ============================================================================
# Logger Tests
# ============================================================================


class TestLogger:
    """Tests for Logger."""

    def test_name(self) -> None:
        assert Logger("manager").name == "manager"

    @pytest.mark.parametrize(
        ("method", "level"),
        [
            ("debug", logging.DEBUG),
            ("info", logging.INFO),
            ("warning", logging.WARNING),
            ("error", logging.ERROR),
            ("critical", logging.CRITICAL),
        ],
    )
    def test_levels(self, caplog: pytest.LogCaptureFixture, method: str, level: int) -> None:
        logger = Logger("test_levels")
        with caplog.at_level(logging.DEBUG, logger="test_levels"):
            getattr(logger, method)("event_name", key="value")
        assert caplog.records[-1].levelno == level
        assert caplog.records[-1].getMessage() == "event_name"
        assert caplog.records[-1].structured_kv == {"key": "value"}

    def test_bind_merges_context(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_bind").bind(host="ed25519:ab")
        with caplog.at_level(logging.INFO, logger="test_bind"):
            logger.info("host_tested", probes=2)
        assert caplog.records[-1].structured_kv == {"host": "ed25519:ab", "probes": "2"}

    def test_disabled_level_is_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_disabled")
        with caplog.at_level(logging.WARNING, logger="test_disabled"):
            logger.debug("hidden")
        assert not [r for r in caplog.records if r.name == "test_disabled"]

    def test_json_output(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_json", json_output=True)
        with caplog.at_level(logging.INFO, logger="test_json"):
            logger.info("host_tested", probes=2)
        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["message"] == "host_tested"
        assert payload["service"] == "test_json"
        assert payload["level"] == "info"
        assert payload["probes"] == 2

    def test_exception_attaches_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_exc")
        with caplog.at_level(logging.ERROR, logger="test_exc"):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                logger.exception("probe_crashed")
        assert caplog.records[-1].exc_info is not None
