from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = "tectonic_globe_engine"
# Generation runs on "tg-job" pool threads, so the thread name is part of every line.
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"


def setup_logging(level: int | str = logging.INFO, log_file: str | None = None) -> logging.Logger:
    """Point the package logger at stdout and, optionally, an appended log file.

    Safe to call again: earlier handlers are closed and replaced.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("logging configured at %s", logging.getLevelName(logger.level))
    return logger
