"""
Unit tests for core.logger module.

Tests:
- format_kv_pairs() quoting, escaping and truncation
- StructuredFormatter output layout
- Logger key=value and JSON modes
- Level filtering
"""

import json
import logging

import pytest

from georelay.core.logger import Logger, StructuredFormatter, format_kv_pairs


# ============================================================================
# format_kv_pairs Tests
# ============================================================================


class TestFormatKvPairs:
    """Tests for format_kv_pairs() utility function."""

    def test_empty_dict(self) -> None:
        assert format_kv_pairs({}) == ""

    def test_simple_values(self) -> None:
        assert format_kv_pairs({"entries": 412, "ok": True}) == " entries=412 ok=True"

    def test_value_with_spaces_quoted(self) -> None:
        assert format_kv_pairs({"error": "timed out"}) == ' error="timed out"'

    def test_double_quotes_escaped(self) -> None:
        assert format_kv_pairs({"key": 'say "hi"'}) == ' key="say \\"hi\\""'

    def test_empty_string_quoted(self) -> None:
        assert format_kv_pairs({"key": ""}) == ' key=""'

    def test_truncation(self) -> None:
        result = format_kv_pairs({"key": "x" * 20}, max_value_length=5)
        assert "xxxxx...<truncated 15 chars>" in result

    def test_no_truncation_when_disabled(self) -> None:
        assert format_kv_pairs({"key": "x" * 20}, max_value_length=None) == " key=" + "x" * 20

    def test_custom_prefix(self) -> None:
        assert format_kv_pairs({"a": 1}, prefix="") == "a=1"


# ============================================================================
# StructuredFormatter Tests
# ============================================================================


class TestStructuredFormatter:
    """StructuredFormatter.format()."""

    def test_with_structured_kv(self) -> None:
        record = logging.LogRecord("directory", logging.INFO, __file__, 1, "loaded", None, None)
        record.structured_kv = {"entries": 3}
        assert StructuredFormatter().format(record) == "info directory loaded entries=3"

    def test_plain_record(self) -> None:
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "msg %s", ("a",), None)
        assert StructuredFormatter().format(record) == "warning x msg a"


# ============================================================================
# Logger Tests
# ============================================================================


class TestLogger:
    """Logger output modes."""

    def test_name(self) -> None:
        assert Logger("manager").name == "manager"

    def test_kv_mode_attaches_extra(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.kv")
        with caplog.at_level(logging.INFO, logger="test.kv"):
            logger.info("refresh_completed", entries=5, url="https://x")

        record = caplog.records[-1]
        assert record.getMessage() == "refresh_completed"
        assert record.structured_kv == {"entries": 5, "url": "https://x"}

    def test_kv_mode_truncates_strings_only(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.trunc", max_value_length=3)
        with caplog.at_level(logging.INFO, logger="test.trunc"):
            logger.info("evt", text="abcdef", count=123456)

        extra = caplog.records[-1].structured_kv
        assert extra["text"].startswith("abc...")
        assert extra["count"] == 123456

    def test_json_mode(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.json", json_output=True)
        with caplog.at_level(logging.WARNING, logger="test.json"):
            logger.warning("refresh_failed", error="boom")

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["level"] == "warning"
        assert payload["component"] == "test.json"
        assert payload["message"] == "refresh_failed"
        assert payload["error"] == "boom"

    def test_disabled_level_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.level")
        with caplog.at_level(logging.WARNING, logger="test.level"):
            logger.debug("hidden")
            logger.info("hidden")
        assert caplog.records == []

    def test_exception_includes_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.exc")
        with caplog.at_level(logging.ERROR, logger="test.exc"):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                logger.exception("failed", step="parse")

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.exc_info is not None
