"""Logging setup shared by every module: console, rotating file and in-memory dev log."""

import logging
import sys
import threading
from collections import deque
from logging.handlers import RotatingFileHandler
from typing import List

from line_resolver.config.env import ENABLE_LOGGING, LOG_DIR, LOG_FILE, LOG_LEVEL

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEV_LOG_FORMAT = "%(asctime)s %(message)s"
DEV_LOG_SIZE = 500


class CustomLogger(logging.Logger):
    """Logger with a helper for logging errors together with their traceback."""

    def error_trace(self, msg, *args, **kwargs) -> None:
        """Log an error message with the current exception's stack trace."""
        self.error(msg, *args, exc_info=True, **kwargs)


class MemoryLogHandler(logging.Handler):
    """Keeps the most recent formatted records for the developer log view.

    Cleared at the start of each top-level resolution so the view only shows
    the latest attempt.
    """

    def __init__(self, capacity: int = DEV_LOG_SIZE):
        super().__init__()
        self._lines: deque[str] = deque(maxlen=capacity)
        self._lines_lock = threading.Lock()
        self.setFormatter(logging.Formatter(DEV_LOG_FORMAT, datefmt="%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        with self._lines_lock:
            self._lines.append(line)

    def lines(self) -> List[str]:
        with self._lines_lock:
            return list(self._lines)

    def clear(self) -> None:
        with self._lines_lock:
            self._lines.clear()


# Process-wide developer log
dev_log = MemoryLogHandler()

_file_handler = None
_file_handler_lock = threading.Lock()


def _get_file_handler():
    """Create the shared rotating file handler once; None if the log dir is unusable."""
    global _file_handler
    with _file_handler_lock:
        if _file_handler is not None:
            return _file_handler
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5)
        except OSError as e:
            sys.stderr.write(f"File logging disabled, cannot write to {LOG_FILE}: {e}\n")
            return None
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _file_handler = handler
        return _file_handler


def setup_logger(name: str) -> CustomLogger:
    """Return a configured logger for the given module name."""
    logging.setLoggerClass(CustomLogger)
    logger = logging.getLogger(name)
    logging.setLoggerClass(logging.Logger)

    if getattr(logger, "_line_resolver_configured", False):
        return logger  # type: ignore[return-value]

    logger.setLevel(LOG_LEVEL)
    logger.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console)
    logger.addHandler(dev_log)

    if ENABLE_LOGGING:
        file_handler = _get_file_handler()
        if file_handler is not None:
            logger.addHandler(file_handler)

    logger._line_resolver_configured = True  # type: ignore[attr-defined]
    return logger  # type: ignore[return-value]
