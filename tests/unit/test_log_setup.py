"""Unit tests for structlog output configuration."""

import json
import sys

import pytest
import structlog

from src.serverpulse.observability import log_setup
from src.serverpulse.observability.log_setup import configure_logging


@pytest.fixture(autouse=True)
def restore_stdout_logging():
    yield
    configure_logging("INFO", "")


def test_level_reload_reuses_file_stream(tmp_path):
    log_file = tmp_path / "logs" / "serverpulse.log"

    configure_logging("INFO", str(log_file))
    first = log_setup._file_output
    configure_logging("DEBUG", str(log_file))
    configure_logging("WARNING", str(log_file))

    assert log_setup._file_output is first
    assert not first.closed


def test_switching_path_closes_previous_stream(tmp_path):
    configure_logging("INFO", str(tmp_path / "a.log"))
    first = log_setup._file_output

    configure_logging("INFO", str(tmp_path / "b.log"))

    assert first.closed
    assert log_setup._file_output is not first
    assert not log_setup._file_output.closed


def test_switching_to_stdout_closes_file(tmp_path):
    configure_logging("INFO", str(tmp_path / "a.log"))
    first = log_setup._file_output

    configure_logging("INFO", "")

    assert first.closed
    assert log_setup._file_output is None


def test_events_written_as_json_lines(tmp_path):
    log_file = tmp_path / "serverpulse.log"
    configure_logging("INFO", str(log_file))

    structlog.get_logger("serverpulse.test").info("status_resolved_from_cache", address="game.test:30120")
    structlog.get_logger("serverpulse.test").debug("filtered_out")
    log_setup._file_output.flush()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert event["event"] == "status_resolved_from_cache"
    assert event["level"] == "info"


def test_stdout_is_never_closed():
    configure_logging("INFO", "")
    configure_logging("DEBUG", "")

    assert not sys.stdout.closed
