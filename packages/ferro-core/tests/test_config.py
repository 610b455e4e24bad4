"""Tests for ferro.core.config and ferro.core.log."""

from __future__ import annotations

import logging

import pytest

from ferro.core.config import HostConfig, env_flag
from ferro.core.log import configure_from_env, configure_logging


@pytest.mark.parametrize(
    "value,expected",
    [("1", True), ("true", True), ("YES", True), (" on ", True), ("0", False), ("off", False)],
)
def test_env_flag(value: str, expected: bool) -> None:
    assert env_flag(value) is expected


def test_env_flag_default() -> None:
    assert env_flag(None, True) is True
    assert env_flag("  ", True) is True


class TestHostConfig:
    def test_defaults(self):
        config = HostConfig.from_env({})
        assert config == HostConfig()
        assert config.show_errors is True
        assert config.title == "Ferro App"

    def test_environment(self):
        config = HostConfig.from_env(
            {
                "FERRO_FULLSCREEN": "1",
                "FERRO_MOUSE": "true",
                "FERRO_TITLE": "Demo",
                "FERRO_WRITE_LOG": "/tmp/ferro.log",
            }
        )
        assert config.fullscreen is True
        assert config.mouse is True
        assert config.title == "Demo"
        assert config.write_log == "/tmp/ferro.log"

    def test_production_hides_errors(self):
        assert HostConfig.from_env({"FERRO_ENV": "production"}).show_errors is False
        assert HostConfig.from_env({"FERRO_ENV": "development"}).show_errors is True

    def test_overrides_win(self):
        config = HostConfig.from_env({"FERRO_FULLSCREEN": "1"}, fullscreen=False)
        assert config.fullscreen is False

    def test_unknown_override(self):
        with pytest.raises(TypeError):
            HostConfig.from_env({}, colour=True)


class TestLogging:
    def teardown_method(self) -> None:
        configure_logging(logging.WARNING)

    def test_file_handler(self, tmp_path):
        path = tmp_path / "ferro.log"
        handler = configure_logging("debug", str(path))
        assert isinstance(handler, logging.FileHandler)
        logging.getLogger("ferro.core.test").debug("hello from test")
        handler.flush()
        text = path.read_text(encoding="utf-8")
        assert "[DEBUG] ferro.core.test: hello from test" in text

    def test_reconfigure_replaces_handler(self, tmp_path):
        first = configure_logging("info", str(tmp_path / "a.log"))
        second = configure_logging("info", str(tmp_path / "b.log"))
        handlers = logging.getLogger("ferro").handlers
        assert second in handlers
        assert first not in handlers

    def test_without_path(self):
        assert configure_logging("info") is None
        assert logging.getLogger("ferro").level == logging.INFO

    def test_from_env(self, tmp_path, monkeypatch):
        monkeypatch.delenv("FERRO_LOG_FILE", raising=False)
        assert configure_from_env() is None
        monkeypatch.setenv("FERRO_LOG_FILE", str(tmp_path / "env.log"))
        monkeypatch.setenv("FERRO_LOG_LEVEL", "warning")
        assert configure_from_env() is not None
        assert logging.getLogger("ferro").level == logging.WARNING
