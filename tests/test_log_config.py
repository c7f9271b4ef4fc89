"""Tests for recordkit/log_config.py."""

import logging
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler

from recordkit.log_config import FILE_LOGGERS, setup_logging


@contextmanager
def bare_root():
    """Run with no root handlers, restoring pytest's own handlers afterwards."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers.clear()
    try:
        yield root
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        for name in FILE_LOGGERS:
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
            logger.setLevel(logging.NOTSET)


class TestSetupLogging:
    def test_console_and_file_handlers(self, tmp_path):
        with bare_root() as root:
            setup_logging(level=logging.DEBUG, log_dir=str(tmp_path))

            assert len(root.handlers) == 1
            assert root.level == logging.DEBUG
            for name in FILE_LOGGERS:
                handlers = logging.getLogger(name).handlers
                assert any(isinstance(h, RotatingFileHandler) for h in handlers)
        assert (tmp_path / "recordkit_bulk_load.log").exists()

    def test_console_only(self):
        with bare_root() as root:
            setup_logging(log_dir=None)
            assert len(root.handlers) == 1
            assert not any(logging.getLogger(n).handlers for n in FILE_LOGGERS)

    def test_skips_when_already_configured(self):
        with bare_root() as root:
            setup_logging(log_dir=None)
            setup_logging(log_dir=None)
            assert len(root.handlers) == 1

    def test_database_file_records_statement_trace(self, tmp_path):
        with bare_root():
            setup_logging(level=logging.INFO, log_dir=str(tmp_path))
            logging.getLogger("recordkit.database.statements").debug("Executed SELECT 1")
            for handler in logging.getLogger("recordkit.database").handlers:
                handler.flush()
        assert "Executed SELECT 1" in (tmp_path / "recordkit_database.log").read_text()
