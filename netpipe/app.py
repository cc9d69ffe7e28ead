"""
Main application class with lifecycle management.
"""

import logging
import signal
import threading

from typing import Optional

from .common.address import format_address
from .config import Settings, settings as default_settings
from .exceptions import EndOfStreamError
from .log.writer import Writer
from .logging_setup import HandlerLogging, setup_logging, teardown_logging
from .tcp.connection import Connection
from .tcp.server import Server as TCPServer
from .udp.server import Packet, Server as UDPServer


MODES = ("tcp", "udp", "both")

READ_CHUNK = 4096


class Application:
    """
    Echo service over TCP and/or UDP.

    Example usage:
        app = Application(Settings(tcp_address="127.0.0.1:0"))
        app.startup("tcp")
        ...
        app.shutdown()
    """

    def __init__(self, settings: Optional[Settings] = None, writer: Optional[Writer] = None):
        """Initialize application components."""
        self.settings = settings or default_settings

        self.writer = writer or Writer()
        self.writer.configure(self.settings.writer_settings())

        setup_logging(self.settings, self.writer)

        self.logger = logging.getLogger("netpipe.app")
        self.handler_logging = HandlerLogging(logging.getLogger("netpipe.handlers"))

        self.tcp_server: Optional[TCPServer] = None
        self.udp_server: Optional[UDPServer] = None

        self._stop_requested = threading.Event()

        self.logger.info("Application initialized")

    def echo_connection(self, connection: Connection) -> None:
        """Write every chunk back until the peer closes the stream."""
        while True:
            try:
                data = connection.read_bytes(READ_CHUNK)
            except EndOfStreamError:
                return
            connection.write(data)

    def echo_packet(self, packet: Packet) -> None:
        packet.reply(packet.data)

    def startup(self, mode: str = "both") -> None:
        """
        Start the servers selected by mode.

        Raises:
            ValueError: If mode is not tcp, udp or both
            ListenError: If a socket cannot be opened
        """
        if mode not in MODES:
            raise ValueError(f"Unknown mode {mode!r} (expected one of {', '.join(MODES)})")

        self.logger.info(f"Starting services ({mode}):")

        if mode in ("tcp", "both"):
            self.tcp_server = TCPServer(
                logger=logging.getLogger("netpipe.tcp"),
                listen_backlog=self.settings.tcp_listen_backlog,
                max_workers=self.settings.tcp_max_workers,
            )
            self.tcp_server.start(
                self.settings.tcp_network,
                self.settings.tcp_address,
                self.settings.tcp_pool_size,
                on_success=self.handler_logging.connection_handler_debug(self.echo_connection),
                on_failure=self._on_failure,
            )
            self.writer.info("tcp echo listening on %s", format_address(self.tcp_server.address))

        if mode in ("udp", "both"):
            self.udp_server = UDPServer(logger=logging.getLogger("netpipe.udp"))
            self.udp_server.start(
                self.settings.udp_network,
                self.settings.udp_address,
                self.settings.udp_recv_buffer_size,
                self.handler_logging.packet_handler_debug(self.echo_packet),
                async_mode=self.settings.udp_async,
                on_failure=self._on_failure,
                options=self.settings.udp_options(),
            )
            self.writer.info("udp echo listening on %s", format_address(self.udp_server.address))

        self.logger.info("Application startup complete")

    def shutdown(self) -> None:
        """Shutdown routine: stop the servers, then flush and close the log writer."""
        self.logger.info("Shutting down application:")

        if self.tcp_server:
            self.tcp_server.stop()
            self.tcp_server = None

        if self.udp_server:
            self.udp_server.stop()
            self.udp_server = None

        self.logger.info("Application shutdown complete")

        teardown_logging()
        self.writer.finalize()

    def request_stop(self) -> None:
        """Make run() return; safe to call from a signal handler."""
        self._stop_requested.set()

    def run(self, mode: str = "both") -> None:
        """Start the servers and block until SIGINT or SIGTERM."""
        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, self._on_signal)

        try:
            self.startup(mode)
            while not self._stop_requested.wait(0.5):
                pass
            self.logger.info("Stop requested")
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)
            self.shutdown()

    def _on_signal(self, signum, frame) -> None:
        self.request_stop()

    def _on_failure(self, error: Exception) -> None:
        self.writer.error("socket error: %s", error)
