"""Tests for keel.core.logging."""

from __future__ import annotations

import json

import pytest

from keel.core.logging import bind_context, clear_context, configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_context():
    yield
    clear_context()


class TestConfigureLogging:
    def test_json_output(self, capsys):
        configure_logging(level="INFO", json_format=True, service="keel-test")
        get_logger("keel.test").info("guard_claimed", token="Ns_app")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "guard_claimed"
        assert record["token"] == "Ns_app"
        assert record["service.name"] == "keel-test"
        assert record["log.level"] == "info"
        assert "@timestamp" in record

    def test_level_filtering(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        get_logger("keel.test").info("hidden")
        get_logger("keel.test").warning("shown")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err

    def test_console_output(self, capsys):
        configure_logging(level="DEBUG", json_format=False)
        get_logger("keel.test").debug("task_stopped", task="beat")
        err = capsys.readouterr().err
        assert "task_stopped" in err
        assert "beat" in err

    def test_without_timestamp(self, capsys):
        configure_logging(json_format=True, add_timestamp=False)
        get_logger("keel.test").info("evt")
        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert "@timestamp" not in record

    def test_stdout_stays_clean(self, capsys):
        configure_logging(json_format=True)
        get_logger("keel.test").info("evt")
        assert capsys.readouterr().out == ""


class TestContext:
    def test_bound_context_is_merged(self, capsys):
        configure_logging(json_format=True)
        bind_context(token="Ns_editor")
        get_logger("keel.test").info("guard_probe")
        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["token"] == "Ns_editor"

    def test_clear_context(self, capsys):
        configure_logging(json_format=True)
        bind_context(token="Ns_editor")
        clear_context()
        get_logger("keel.test").info("guard_probe")
        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert "token" not in record
