"""
Tests for logging setup: level resolution and handlers.
"""

import logging

import pytest

from hostops.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    ENV_LEVEL,
    _parse_level,
    resolve_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger(monkeypatch):
    for name in (ENV_LEVEL, ENV_FILE, ENV_FILE_LEVEL):
        monkeypatch.delenv(name, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


# ── Level resolution ─────────────────────────────────────────────────


class TestResolveLevel:
    def test_default(self):
        assert resolve_level() == "WARNING"

    def test_flags(self):
        assert resolve_level(verbose=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"
        assert resolve_level(debug=True, quiet=True) == "DEBUG"

    def test_env_when_no_flag(self, monkeypatch):
        monkeypatch.setenv(ENV_LEVEL, "INFO")
        assert resolve_level() == "INFO"
        assert resolve_level(quiet=True) == "ERROR"

    def test_parse_level(self):
        assert _parse_level("debug") == logging.DEBUG
        assert _parse_level("nonsense") == logging.WARNING
        assert _parse_level(None) == logging.WARNING


# ── Handlers ─────────────────────────────────────────────────────────


class TestSetupLogging:
    def test_console_only(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.INFO

    def test_noisy_loggers_quieted(self):
        setup_logging("INFO")
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_file_handler_from_env(self, tmp_path, monkeypatch):
        log_file = tmp_path / "hostops.log"
        monkeypatch.setenv(ENV_FILE, str(log_file))
        monkeypatch.setenv(ENV_FILE_LEVEL, "DEBUG")

        setup_logging("WARNING")
        root = logging.getLogger()
        assert len(root.handlers) == 2
        assert root.level == logging.DEBUG

        logging.getLogger("hostops.test").debug("probe chain walked")
        for handler in root.handlers:
            handler.flush()
        assert "probe chain walked" in log_file.read_text()
