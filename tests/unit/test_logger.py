"""Unit tests for bleedserve/utils/logger.py — level resolution and processors."""

from __future__ import annotations

import json

import pytest

from bleedserve.constants import SERVICE_NAME, SERVICE_VERSION
from bleedserve.utils.logger import (
    add_request_id,
    add_service,
    clear_request_id,
    configure_logging,
    effective_log_level,
    get_logger,
    set_request_id,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.delenv("JSON_LOGS", raising=False)
    yield
    clear_request_id()
    configure_logging("INFO")


class TestEffectiveLogLevel:
    def test_default_is_info(self) -> None:
        assert effective_log_level() == "INFO"

    def test_configured_value_used(self) -> None:
        assert effective_log_level("warning") == "WARNING"

    def test_debug_env_beats_config(self, monkeypatch) -> None:
        monkeypatch.setenv("DEBUG", "true")
        assert effective_log_level("ERROR") == "DEBUG"

    def test_log_level_env_beats_everything(self, monkeypatch) -> None:
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert effective_log_level("WARNING") == "ERROR"

    def test_empty_log_level_env_ignored(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "")
        assert effective_log_level("WARNING") == "WARNING"

    def test_unknown_name_falls_back_to_info(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        assert effective_log_level("DEBUG") == "INFO"


class TestProcessors:
    def test_add_service(self) -> None:
        event = add_service(None, "info", {"event": "x"})
        assert event["service"] == SERVICE_NAME
        assert event["version"] == SERVICE_VERSION

    def test_add_service_keeps_explicit_version(self) -> None:
        event = add_service(None, "info", {"event": "x", "version": "other"})
        assert event["version"] == "other"

    def test_add_request_id_when_set(self) -> None:
        set_request_id("01J0000000000000000000000")
        assert add_request_id(None, "info", {})["request_id"] == "01J0000000000000000000000"

    def test_add_request_id_when_unset(self) -> None:
        clear_request_id()
        assert "request_id" not in add_request_id(None, "info", {})


class TestConfigureLogging:
    def test_returns_applied_level(self, monkeypatch) -> None:
        assert configure_logging("debug") == "DEBUG"
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert configure_logging("debug") == "ERROR"

    def test_json_line_carries_service_and_request_id(self, capsys) -> None:
        configure_logging("INFO", json_output=True)
        set_request_id("req-1")

        get_logger("test").info("something_happened", host="example.com")

        line = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert line["event"] == "something_happened"
        assert line["service"] == SERVICE_NAME
        assert line["request_id"] == "req-1"
        assert line["level"] == "info"
        assert "timestamp" in line

    def test_level_filters_events(self, capsys) -> None:
        configure_logging("WARNING", json_output=True)

        log = get_logger("test")
        log.info("quiet")
        log.warning("loud")

        out = capsys.readouterr().out
        assert "quiet" not in out
        assert "loud" in out
