"""
Append-only request log.

Connection handlers never touch the log file directly: records are put on a
queue by a QueueHandler and a single QueueListener thread writes them to the
log file and the console, one whole line at a time.
"""

import logging
import logging.handlers
import queue
import sys
from pathlib import Path
from typing import List, Optional

PACKAGE_LOGGER = "webroot_server"
LOG_FORMAT = "%(asctime)s.%(msecs)03d - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogSink:
    """Routes package log records through a queue to one dedicated writer."""

    def __init__(self, log_file: Optional[Path] = None, console: bool = True, level: int = logging.INFO):
        self.log_file = log_file
        self.console = console
        self.level = level
        self.queue: queue.Queue = queue.Queue(-1)
        self._queue_handler: Optional[logging.handlers.QueueHandler] = None
        self._listener: Optional[logging.handlers.QueueListener] = None
        self._saved_level = logging.NOTSET
        self._saved_propagate = True

    def _build_handlers(self) -> List[logging.Handler]:
        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        handlers: List[logging.Handler] = []

        if self.log_file is not None:
            file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

        if self.console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            handlers.append(console_handler)

        return handlers

    def start(self) -> "LogSink":
        if self._listener is not None:
            return self

        logger = logging.getLogger(PACKAGE_LOGGER)
        self._saved_level = logger.level
        self._saved_propagate = logger.propagate
        logger.setLevel(self.level)
        # the listener is the only writer while attached
        logger.propagate = False

        self._queue_handler = logging.handlers.QueueHandler(self.queue)
        logger.addHandler(self._queue_handler)

        self._listener = logging.handlers.QueueListener(
            self.queue, *self._build_handlers(), respect_handler_level=True
        )
        self._listener.start()
        return self

    def stop(self):
        """Flush pending records and detach from the package logger."""
        if self._listener is None:
            return

        logger = logging.getLogger(PACKAGE_LOGGER)
        logger.removeHandler(self._queue_handler)
        logger.setLevel(self._saved_level)
        logger.propagate = self._saved_propagate
        self._listener.stop()
        for handler in self._listener.handlers:
            handler.close()

        self._listener = None
        self._queue_handler = None

    def __enter__(self) -> "LogSink":
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
