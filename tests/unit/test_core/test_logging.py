"""Unit tests for logging configuration."""

import json
import sys

import pytest
from loguru import logger

from broadband_api.core.logging import setup_logging


@pytest.fixture
def restore_logging():
    yield
    logger.remove()
    logger.add(sys.__stderr__, level="INFO")


class TestLogging:
    """Tests for Loguru logging setup."""

    def test_setup_logging_does_not_raise(self) -> None:
        """setup_logging with valid log level does not raise."""
        setup_logging("DEBUG")
        setup_logging("INFO")
        setup_logging("WARNING")

    def test_setup_logging_case_insensitive(self) -> None:
        """setup_logging accepts case-insensitive log levels."""
        setup_logging("info")
        setup_logging("debug")

    def test_file_sink_created(self, tmp_path) -> None:
        """A log directory enables the rotating file sink."""
        log_dir = tmp_path / "logs"
        setup_logging("INFO", log_dir=str(log_dir))
        logger.info("file sink check")
        logger.complete()
        assert (log_dir / "broadband-api.log").exists()
        setup_logging("INFO")

    def test_plain_records_use_text_format(self, capsys, restore_logging) -> None:
        setup_logging("INFO")
        logger.info("plain record")
        err = capsys.readouterr().err
        lines = [line for line in err.splitlines() if "plain record" in line]
        assert len(lines) == 1
        assert "| INFO     |" in lines[0]

    def test_json_output_records_serialized_once(self, capsys, restore_logging) -> None:
        """Records bound with json_output go only to the JSON sink."""
        setup_logging("INFO")
        logger.bind(json_output=True, path="/api/v1/broadband", status_code=200).info("GET /api/v1/broadband -> 200")
        err = capsys.readouterr().err
        lines = [line for line in err.splitlines() if "/api/v1/broadband" in line]
        assert len(lines) == 1
        payload = json.loads(lines[0])
        assert payload["record"]["message"] == "GET /api/v1/broadband -> 200"
        assert payload["record"]["extra"]["status_code"] == 200
