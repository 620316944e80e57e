"""Tests for environment backed settings and console logging."""

import logging

import pytest

from shared.exceptions import ConfigurationError
from shared.logging.logging_setup import ColorLogger, ConsoleFormatter, TimezoneFormatter


class TestHelperConfig:
    """Test typed environment lookups."""

    def test_string_is_stripped(self, helper_config, monkeypatch):
        monkeypatch.setenv("VR_NAME", "  vault  ")

        assert helper_config.get_string_val("vr_name") == "vault"

    def test_empty_counts_as_unset(self, helper_config, monkeypatch):
        monkeypatch.setenv("VR_NAME", "   ")

        assert helper_config.get_string_val("VR_NAME", default="fallback") == "fallback"
        with pytest.raises(ConfigurationError):
            helper_config.get_string_val("VR_NAME")

    def test_numbers(self, helper_config, monkeypatch):
        monkeypatch.setenv("VR_INT", "12")
        monkeypatch.setenv("VR_FLOAT", "0.5")
        monkeypatch.setenv("VR_BAD", "twelve")

        assert helper_config.get_number_val("VR_INT") == 12
        assert isinstance(helper_config.get_number_val("VR_INT"), int)
        assert helper_config.get_number_val("VR_FLOAT") == 0.5
        with pytest.raises(ConfigurationError):
            helper_config.get_number_val("VR_BAD")

    def test_bool(self, helper_config, monkeypatch):
        monkeypatch.setenv("VR_ON", "Yes")
        monkeypatch.setenv("VR_OFF", "no")
        monkeypatch.delenv("VR_UNSET", raising=False)

        assert helper_config.get_bool_val("VR_ON") is True
        assert helper_config.get_bool_val("VR_OFF") is False
        assert helper_config.get_bool_val("VR_UNSET", default=True) is True

    def test_list(self, helper_config, monkeypatch):
        monkeypatch.setenv("VR_EXT", "[.md, .markdown ,]")
        monkeypatch.setenv("VR_EMPTY", "[]")
        monkeypatch.setenv("VR_BARE", ".md,.txt")

        assert helper_config.get_list_val("VR_EXT") == [".md", ".markdown"]
        assert helper_config.get_list_val("VR_EMPTY") == []
        with pytest.raises(ConfigurationError):
            helper_config.get_list_val("VR_BARE")

    def test_typed_dispatch(self, helper_config, monkeypatch):
        monkeypatch.setenv("VR_INT", "3")

        assert helper_config.get_typed_val("VR_INT", val_type="number") == 3
        with pytest.raises(ConfigurationError):
            helper_config.get_typed_val("VR_INT", val_type="date")


class TestLogging:
    """Test formatters and the color-aware logger wrapper."""

    @staticmethod
    def _record(level: int, msg: str, **extra) -> logging.LogRecord:
        record = logging.LogRecord("vault_rag", level, __file__, 1, msg, (), None)
        record.__dict__.update(extra)
        return record

    def test_warning_badge_and_color(self):
        formatter = ConsoleFormatter("UTC", fmt="%(message)s")

        line = formatter.format(self._record(logging.WARNING, "disk almost full"))

        assert line.startswith("\033[33m")
        assert "⚠️ disk almost full" in line
        assert line.endswith("\033[0m")

    def test_plain_formatter_has_no_ansi(self):
        formatter = TimezoneFormatter("UTC", fmt="%(message)s")

        assert formatter.format(self._record(logging.ERROR, "boom", color="green")) == "⛔ boom"

    def test_record_color_wins_over_level(self):
        formatter = ConsoleFormatter("UTC", fmt="%(message)s")

        line = formatter.format(self._record(logging.INFO, "synced", color="green"))

        assert line == "\033[32msynced\033[0m"

    def test_color_logger_passes_color(self, caplog):
        logger = ColorLogger(logging.getLogger("vault_rag.tests.color"))

        with caplog.at_level(logging.INFO, logger="vault_rag.tests.color"):
            logger.info("Indexed %d note(s).", 3, color="cyan")
            logger.child("scheduler").warning("late")

        assert caplog.records[0].getMessage() == "Indexed 3 note(s)."
        assert caplog.records[0].color == "cyan"
        assert caplog.records[1].name == "vault_rag.tests.color.scheduler"
