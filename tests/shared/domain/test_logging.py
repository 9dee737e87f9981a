"""Tests for logging configuration."""

import logging

import pytest
from shared.logging import configure_logging, log_level


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLogLevel:
    def test_level_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert log_level("production") == "INFO"
        assert log_level("development") == "DEBUG"
        assert log_level("test") == "WARNING"

    def test_log_level_variable_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert log_level("development") == "ERROR"


class TestConfigureLogging:
    def test_no_log_dir_writes_to_stdout_only(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        configure_logging(env="test")

        assert list(tmp_path.iterdir()) == []
        assert [type(handler) for handler in logging.getLogger().handlers] == [logging.StreamHandler]

    def test_log_dir_is_created_when_given(self, tmp_path):
        log_dir = tmp_path / "nested" / "logs"
        configure_logging(log_dir=log_dir, env="test")

        logging.getLogger("storefront").warning("written")

        assert (log_dir / "storefront.log").exists()
