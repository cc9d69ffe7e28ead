import sys
import logging
import time

from functools import wraps
from typing import Any, Callable, Optional

from .common.address import format_address
from .config import Settings
from .log.handler import WriterHandler
from .log.writer import Writer


CONSOLE_HANDLER_NAME = "netpipe-console"
WRITER_HANDLER_NAME = "netpipe-writer"


def setup_logging(settings: Settings, writer: Optional[Writer] = None) -> None:
    """
    Configure the root logger based on settings.

    Library diagnostics go to stdout. When a writer is given they are
    forwarded into its async pipeline instead, and also printed to stdout
    only if the writer logs to a file. Calling this again replaces the
    handlers installed by a previous call.
    """

    log_level = getattr(logging, settings.logging_level.upper(), logging.INFO)

    # Create formatter
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    teardown_logging()

    # Console handler
    if writer is None or settings.log_output.lower() == "file":
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.set_name(CONSOLE_HANDLER_NAME)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # Async writer handler (if given)
    if writer is not None:
        writer_handler = WriterHandler(writer, level=log_level)
        writer_handler.set_name(WRITER_HANDLER_NAME)
        root_logger.addHandler(writer_handler)


def teardown_logging() -> None:
    """Remove the handlers installed by setup_logging()."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if handler.name in (CONSOLE_HANDLER_NAME, WRITER_HANDLER_NAME):
            root_logger.removeHandler(handler)
            handler.close()


class HandlerLogging:
    """Logging decorators for server callbacks."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("handler-logger")

    def _handler_decorator(
        self,
        func: Callable,
        kind: str,
        peer_of: Callable[[Any], Any],
        level: int,
    ) -> Callable:
        """Base decorator; the connection or packet is the last positional argument."""

        @wraps(func)
        def wrapper(*args, **kwargs):
            handler_name = func.__name__
            peer = format_address(peer_of(args[-1])) if args else "-"
            start_time = time.time()

            try:
                result = func(*args, **kwargs)
                duration = time.time() - start_time

                self.logger.log(
                    level,
                    f"[peer:{peer}] {kind} handler '{handler_name}' completed [{duration:.3f}s]"
                )

                return result

            except Exception as e:
                duration = time.time() - start_time

                self.logger.error(
                    f"[peer:{peer}] {kind} handler '{handler_name}' failed: "
                    f"{type(e).__name__}: {e} [{duration:.3f}s]",
                    exc_info=True
                )

                raise

        return wrapper

    def connection_handler(self, func: Callable) -> Callable:
        """Decorator for TCP connection handlers, logging at INFO level."""

        return self._handler_decorator(func, "Connection", _remote_of, logging.INFO)

    def connection_handler_debug(self, func: Callable) -> Callable:
        """Decorator for TCP connection handlers, logging at DEBUG level."""

        return self._handler_decorator(func, "Connection", _remote_of, logging.DEBUG)

    def packet_handler(self, func: Callable) -> Callable:
        """Decorator for UDP packet handlers, logging at INFO level."""

        return self._handler_decorator(func, "Packet", _sender_of, logging.INFO)

    def packet_handler_debug(self, func: Callable) -> Callable:
        """Decorator for UDP packet handlers, logging at DEBUG level."""

        return self._handler_decorator(func, "Packet", _sender_of, logging.DEBUG)


def _remote_of(connection: Any) -> Any:
    return getattr(connection, "remote_address", None)


def _sender_of(packet: Any) -> Any:
    return getattr(packet, "address", None)
