"""Unit tests for callscrub.logging structured logging setup."""

import json
import logging
import os
from io import StringIO
from unittest.mock import patch

import pytest
import structlog

import callscrub.logging


class TestConfigure:
    """Tests for callscrub.logging.configure()."""

    def setup_method(self):
        """Reset structlog and stdlib state before each test."""
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()
        logging.getLogger().handlers.clear()

    def teardown_method(self):
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()
        logging.getLogger().handlers.clear()
        os.environ.pop("CALLSCRUB_LOG_LEVEL", None)
        os.environ.pop("CALLSCRUB_LOG_FORMAT", None)

    def test_json_by_default(self):
        callscrub.logging.configure("engine")

        buf = StringIO()
        with patch("sys.stdout", buf):
            structlog.get_logger().info("samples_redacted", frames_redacted=44100)

        parsed = json.loads(buf.getvalue().strip())
        assert parsed["event"] == "samples_redacted"
        assert parsed["frames_redacted"] == 44100
        assert parsed["level"] == "info"
        assert parsed["service"] == "engine"
        assert "timestamp" in parsed

    def test_console_format_from_env(self):
        os.environ["CALLSCRUB_LOG_FORMAT"] = "console"
        callscrub.logging.configure("cli")

        buf = StringIO()
        with patch("sys.stdout", buf):
            structlog.get_logger().info("dev_event")

        line = buf.getvalue().strip()
        with pytest.raises(json.JSONDecodeError):
            json.loads(line)
        assert "dev_event" in line

    def test_default_level_filters_debug(self):
        callscrub.logging.configure("engine")

        buf = StringIO()
        with patch("sys.stdout", buf):
            structlog.get_logger().debug("running_ffmpeg")

        assert buf.getvalue() == ""

    def test_level_from_env_is_case_insensitive(self):
        os.environ["CALLSCRUB_LOG_LEVEL"] = "debug"
        callscrub.logging.configure("engine")

        buf = StringIO()
        with patch("sys.stdout", buf):
            structlog.get_logger().debug("running_ffmpeg")

        assert json.loads(buf.getvalue())["level"] == "debug"

    def test_invalid_level_falls_back_to_info(self):
        os.environ["CALLSCRUB_LOG_LEVEL"] = "LOUD"
        callscrub.logging.configure("engine")

        buf = StringIO()
        with patch("sys.stdout", buf):
            structlog.get_logger().debug("hidden")
            structlog.get_logger().info("shown")

        lines = buf.getvalue().strip().split("\n")
        assert [json.loads(line)["event"] for line in lines] == ["shown"]

    def test_arguments_override_env(self):
        """Explicit level and format win over the environment."""
        os.environ["CALLSCRUB_LOG_LEVEL"] = "DEBUG"
        os.environ["CALLSCRUB_LOG_FORMAT"] = "console"
        buf = StringIO()
        callscrub.logging.configure("cli", stream=buf, level="WARNING", log_format="json")

        logger = structlog.get_logger()
        logger.info("ignored")
        logger.warning("redaction_fallback", failed_stage="convert")

        parsed = json.loads(buf.getvalue().strip())
        assert parsed["event"] == "redaction_fallback"
        assert parsed["failed_stage"] == "convert"

    def test_explicit_stream(self):
        """Logs go to the given stream, leaving stdout for command output."""
        stream = StringIO()
        callscrub.logging.configure("cli", stream=stream)

        stdout = StringIO()
        with patch("sys.stdout", stdout):
            structlog.get_logger().info("to_stream")

        assert stdout.getvalue() == ""
        assert json.loads(stream.getvalue())["event"] == "to_stream"

    def test_uncached_loggers_follow_reconfiguration(self):
        first, second = StringIO(), StringIO()
        logger = structlog.get_logger()

        callscrub.logging.configure("cli", stream=first, cache_loggers=False)
        logger.info("one")
        callscrub.logging.configure("cli", stream=second, cache_loggers=False)
        logger.info("two")

        assert "one" in first.getvalue()
        assert "two" in second.getvalue()
        assert "two" not in first.getvalue()

    def test_contextvars_merged(self):
        callscrub.logging.configure("engine")
        structlog.contextvars.bind_contextvars(job_id="job_abc123")

        buf = StringIO()
        with patch("sys.stdout", buf):
            structlog.get_logger().info("with_context")

        assert json.loads(buf.getvalue())["job_id"] == "job_abc123"

    def test_stdlib_integration(self):
        callscrub.logging.configure("engine")

        root = logging.getLogger()
        buf = StringIO()
        root.handlers[0].stream = buf
        logging.getLogger("some.third_party.lib").warning("stdlib warning message")

        parsed = json.loads(buf.getvalue().strip())
        assert parsed["event"] == "stdlib warning message"
        assert parsed["level"] == "warning"

    def test_repeated_configure_keeps_one_handler(self):
        root = logging.getLogger()
        root.addHandler(logging.StreamHandler())

        callscrub.logging.configure("first")
        callscrub.logging.configure("second")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)


class TestAddServiceNameProcessor:
    def test_moves_private_key_to_service(self):
        event_dict = {"event": "test", "_service_name": "engine"}
        result = callscrub.logging._add_service_name(None, None, event_dict)
        assert result == {"event": "test", "service": "engine"}

    def test_noop_without_private_key(self):
        event_dict = {"event": "test"}
        assert callscrub.logging._add_service_name(None, None, event_dict) == {
            "event": "test"
        }


class TestResetContext:
    """Tests for callscrub.logging.reset_context()."""

    def setup_method(self):
        structlog.contextvars.clear_contextvars()
        callscrub.logging._configured_service_name = None

    def teardown_method(self):
        structlog.contextvars.clear_contextvars()
        callscrub.logging._configured_service_name = None

    def test_clears_previous_job(self):
        structlog.contextvars.bind_contextvars(job_id="job-1", stage="convert")
        callscrub.logging.reset_context(job_id="job-2")
        assert structlog.contextvars.get_contextvars() == {"job_id": "job-2"}

    def test_preserves_service_name(self):
        callscrub.logging._configured_service_name = "engine"
        callscrub.logging.reset_context()
        assert structlog.contextvars.get_contextvars()["_service_name"] == "engine"
