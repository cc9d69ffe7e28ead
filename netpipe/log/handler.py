"""Bridge from the standard logging module into a Writer."""

import logging

from .levels import Level
from .writer import Writer


def level_from_logging(levelno: int) -> Level:
    """Map a logging level number onto the writer's levels."""
    if levelno >= logging.CRITICAL:
        return Level.FATAL
    if levelno >= logging.ERROR:
        return Level.ERROR
    if levelno >= logging.WARNING:
        return Level.WARN
    if levelno >= logging.INFO:
        return Level.INFO
    if levelno >= logging.DEBUG:
        return Level.DEBUG
    return Level.TRACE


class WriterHandler(logging.Handler):
    """
    logging.Handler that queues records on a Writer.

    CRITICAL records are written at FATAL but never end the process.
    The writer adds the timestamp and level, so the default format only
    carries the logger name and message.
    """

    def __init__(self, writer: Writer, level: int = logging.NOTSET):
        super().__init__(level)
        self.writer = writer
        self.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            self.writer.log(
                level_from_logging(record.levelno),
                "%s",
                message,
                caller=f"{record.filename}:{record.lineno}",
            )
        except Exception:
            self.handleError(record)
