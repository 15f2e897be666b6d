"""Tests for logging configuration."""

import io
import json
import logging

import pytest
import structlog

from imagen_mcp.logging_config import bind_job_context, clear_job_context, configure_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    clear_job_context()


class TestConfigureLogging:
    def test_json_lines_carry_job_context(self, restore_logging):
        stream = io.StringIO()
        configure_logging("info", json_output=True, stream=stream)

        bind_job_context("job_abc", "generate")
        logging.getLogger("imagen_mcp.test").info("Job %s dispatched", "job_abc")
        clear_job_context()

        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert record["event"] == "Job job_abc dispatched"
        assert record["level"] == "info"
        assert record["job_id"] == "job_abc"
        assert record["job_type"] == "generate"

    def test_level_filters_debug(self, restore_logging):
        stream = io.StringIO()
        configure_logging("warning", json_output=True, stream=stream)
        logging.getLogger("imagen_mcp.test").info("hidden")
        assert stream.getvalue() == ""

    def test_noisy_libraries_quieted(self, restore_logging):
        configure_logging("info", stream=io.StringIO())
        assert logging.getLogger("httpx").level == logging.WARNING
        configure_logging("debug", stream=io.StringIO())
        assert logging.getLogger("httpx").level == logging.INFO
