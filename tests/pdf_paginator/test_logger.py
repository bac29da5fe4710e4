"""
Unit tests for pagination logging context.
"""

import json
import logging

from pdf_paginator.logger import JsonFormatter, PaginationLogger, get_logger


LOGGER_NAME = "pdf_paginator.tests.logger"


class TestPaginationLogger:
    """Tests for the run/stage/pass prefix and record attributes."""

    def test_prefix_with_run_and_stage(self):
        log = get_logger(LOGGER_NAME, run_id="abcdef1234567890", stage="engine")
        assert log.prefix == "[run:abcdef12] [engine]"
        assert log.run_id == "abcdef1234567890"

    def test_for_pass_adds_phase_and_pass_number(self):
        log = get_logger(LOGGER_NAME, run_id="abcdef1234567890", stage="engine")
        scoped = log.for_pass(2, "direct")

        assert isinstance(scoped, PaginationLogger)
        assert scoped.prefix == "[run:abcdef12] [engine] [direct#2]"
        # The parent keeps its own context
        assert log.prefix == "[run:abcdef12] [engine]"

    def test_no_context_leaves_message_untouched(self):
        log = PaginationLogger(logging.getLogger(LOGGER_NAME))
        msg, kwargs = log.process("hello", {})
        assert msg == "hello"
        assert kwargs["extra"]["run_id"] is None

    def test_records_carry_context(self, caplog):
        caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
        log = get_logger(LOGGER_NAME, run_id="run-1", stage="applicator").for_pass(3, "sweep")

        log.debug("moved 0/2 section3")

        [record] = [r for r in caplog.records if r.name == LOGGER_NAME]
        assert record.getMessage() == "[run:run-1] [applicator] [sweep#3] moved 0/2 section3"
        assert record.run_id == "run-1"
        assert record.stage == "applicator"
        assert record.phase == "sweep"
        assert record.pass_number == 3


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_context_becomes_fields(self, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER_NAME)
        get_logger(LOGGER_NAME, run_id="run-2", stage="engine").for_pass(1, "direct").info("pass done")

        [record] = [r for r in caplog.records if r.name == LOGGER_NAME]
        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["name"] == LOGGER_NAME
        assert data["run_id"] == "run-2"
        assert data["stage"] == "engine"
        assert data["phase"] == "direct"
        assert data["pass_number"] == 1
        assert data["message"].endswith("pass done")

    def test_unset_context_is_omitted(self):
        record = logging.LogRecord(LOGGER_NAME, logging.WARNING, __file__, 1, "plain", None, None)
        data = json.loads(JsonFormatter().format(record))
        assert data["message"] == "plain"
        assert "run_id" not in data
        assert "pass_number" not in data
