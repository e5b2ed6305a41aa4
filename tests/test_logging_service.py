"""
Tests for logging setup
"""
import logging

import pytest

from retflow.services import logging_service
from retflow.services.logging_service import get_logger, setup_logging


@pytest.fixture
def fresh_logging(monkeypatch):
    """Let setup_logging run again and restore the root logger afterwards"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    monkeypatch.setattr(logging_service, "_logging_initialized", False)
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging"""

    def test_file_handler_created(self, fresh_logging, tmp_path):
        log_path = setup_logging(logging.DEBUG, log_dir=tmp_path / "logs")

        assert log_path is not None
        assert log_path.parent == tmp_path / "logs"
        assert log_path.name.startswith("retflow_")
        assert len(fresh_logging.handlers) == 2

        get_logger("retflow.test").info("Committed circle (1 drawings)")
        for handler in fresh_logging.handlers:
            handler.flush()
        assert "Committed circle" in log_path.read_text(encoding="utf-8")

    def test_console_keeps_level_without_log_file(self, fresh_logging, tmp_path):
        """An unwritable log directory leaves the console at the requested level"""
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("", encoding="utf-8")

        log_path = setup_logging(logging.DEBUG, log_dir=blocker / "logs")

        assert log_path is None
        assert len(fresh_logging.handlers) == 1
        assert fresh_logging.handlers[0].level == logging.DEBUG
        assert get_logger("retflow.test").isEnabledFor(logging.DEBUG)

    def test_console_only(self, fresh_logging, tmp_path):
        assert setup_logging(logging.INFO, log_to_file=False, log_dir=tmp_path) is None
        assert len(fresh_logging.handlers) == 1
        assert not any(tmp_path.iterdir())

    def test_second_call_is_ignored(self, fresh_logging, tmp_path):
        setup_logging(logging.INFO, log_to_file=False)
        handlers = list(fresh_logging.handlers)

        assert setup_logging(logging.DEBUG, log_dir=tmp_path) is None
        assert fresh_logging.handlers == handlers
        assert fresh_logging.level == logging.INFO
