"""Centralized logging configuration for recordkit programs."""

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Loggers that get their own file, mapped to the file's level (None: same as console)
FILE_LOGGERS = {
    "recordkit.bulk_load": None,
    "recordkit.demos": None,
    "recordkit.database": logging.DEBUG,
}


def _file_handler(log_dir, name, level):
    log_file = os.path.join(log_dir, f"{name.replace('.', '_')}.log")
    handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    return handler


def setup_logging(level=logging.INFO, log_dir="logs"):
    """Configure logging for recordkit programs.

    - Root logger: console handler at `level`
    - One RotatingFileHandler (5 MB max, 3 backups) per logger in
      FILE_LOGGERS, written to `log_dir/`. The database file always records
      the DEBUG statement trace, whatever the console shows.

    Pass ``log_dir=None`` to log to the console only. Safe to call multiple
    times: skips if the root logger already has handlers.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(level)
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(console)

    if log_dir is None:
        return

    os.makedirs(log_dir, exist_ok=True)
    for name, file_level in FILE_LOGGERS.items():
        file_level = level if file_level is None else file_level
        logger = logging.getLogger(name)
        if file_level < logger.getEffectiveLevel():
            logger.setLevel(file_level)
        logger.addHandler(_file_handler(log_dir, name, file_level))
