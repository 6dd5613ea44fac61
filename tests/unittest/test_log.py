# AGPL-3.0 License

"""
Unit tests for logger setup.
"""

import json
import sys

import pytest

from pr_gate.log import LoggingFormat, get_logger, setup_logger


@pytest.fixture
def restore_logger():
    yield
    logger = get_logger()
    logger.remove(None)
    logger.add(sys.stderr)


class TestSetupLogger:
    """Test suite for setup_logger."""

    def test_json_format(self, capsys, monkeypatch, restore_logger):
        """Test that JSON output carries the bound context."""
        monkeypatch.delenv("LOG_SANE", raising=False)
        logger = setup_logger("DEBUG", LoggingFormat.JSON)

        logger.bind(rule_id="lint").info("Rule {lint} completed")

        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])["record"]
        assert record["message"] == "Rule {lint} completed"
        assert record["extra"]["rule_id"] == "lint"

    def test_analytics_records_are_filtered(self, capsys, restore_logger):
        """Test that analytics records stay out of the console sink."""
        logger = setup_logger("INFO", LoggingFormat.CONSOLE)

        logger.bind(analytics=True).info("analytics event")
        logger.info("regular event")

        out = capsys.readouterr().out
        assert "regular event" in out
        assert "analytics event" not in out

    def test_unknown_level_falls_back_to_info(self, capsys, restore_logger):
        """Test that an unknown level name behaves like INFO."""
        logger = setup_logger("chatty")

        logger.debug("hidden")
        logger.info("shown")

        out = capsys.readouterr().out
        assert "shown" in out
        assert "hidden" not in out
