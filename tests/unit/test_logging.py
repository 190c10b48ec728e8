"""
Unit tests for structured logging setup.
"""

import io
import json
import logging

import pytest

from queuectl.config import Settings
from queuectl.observability.logging import bound_dispatcher, setup_logging


@pytest.fixture
def log_stream():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    stream = io.StringIO()
    yield stream
    root.handlers = saved_handlers
    root.setLevel(saved_level)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_records_carry_extra_fields(self, log_stream):
        setup_logging(Settings(_env_file=None, log_format="json"), stream=log_stream)

        logging.getLogger("queuectl.test").info("Job transition", extra={"job_id": "job1"})

        record = json.loads(log_stream.getvalue().strip().splitlines()[-1])
        assert record["event"] == "Job transition"
        assert record["job_id"] == "job1"
        assert record["level"] == "info"

    def test_bound_dispatcher_tags_records(self, log_stream):
        setup_logging(Settings(_env_file=None, log_format="json"), stream=log_stream)
        logger = logging.getLogger("queuectl.test")

        with bound_dispatcher("host-1-1"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = (json.loads(line) for line in log_stream.getvalue().strip().splitlines()[-2:])
        assert inside["dispatcher_id"] == "host-1-1"
        assert "dispatcher_id" not in outside

    def test_level_filters_records(self, log_stream):
        setup_logging(Settings(_env_file=None, log_level="WARNING"), stream=log_stream)

        logging.getLogger("queuectl.test").info("hidden")

        assert "hidden" not in log_stream.getvalue()
