"""
netpipe UDP Server Module
Connectionless packet server with inline or threaded handler dispatch.
"""

import logging
import socket
import threading
import time

from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..common.address import bind_datagram, format_address
from ..common.constants import DEFAULT_SHUTDOWN_WAIT, POLL_INTERVAL
from ..common.sync import WaitGroup
from ..exceptions import InvalidArgumentError


class ServerOptions(BaseModel):
    """Optional tuning for the UDP server."""

    model_config = ConfigDict(frozen=True)

    read_buffer_size: Optional[int] = Field(default=None, gt=0)   # SO_RCVBUF
    write_buffer_size: Optional[int] = Field(default=None, gt=0)  # SO_SNDBUF
    max_concurrent: Optional[int] = Field(default=None, gt=0)     # in-flight async handlers
    shutdown_wait: float = Field(default=DEFAULT_SHUTDOWN_WAIT, ge=0)


class ReplyEndpoint:
    """
    Send capability over the server's listening socket.

    Handlers get this instead of the server, so they can answer a packet
    from the address it was sent to without holding the server itself.
    """

    def __init__(self, sock: socket.socket):
        self._socket = sock
        self._local_address = sock.getsockname()

    @property
    def local_address(self) -> Any:
        return self._local_address

    def send_to(self, data: bytes, address: Any) -> int:
        """Send one datagram to address. Raises OSError once the server stopped."""
        return self._socket.sendto(data, address)


@dataclass(frozen=True)
class Packet:
    """One received datagram."""

    data: bytes
    address: Any
    endpoint: ReplyEndpoint

    def reply(self, data: bytes) -> int:
        """Send data back to the packet's sender."""
        return self.endpoint.send_to(data, self.address)


PacketHandler = Callable[[Packet], None]
FailureCallback = Callable[[Exception], None]


class Server:
    """
    UDP Server.

    Example usage:
        server = Server()
        server.start("udp4", "127.0.0.1:4208", 2048, lambda packet: packet.reply(packet.data))
        ...
        server.stop()
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

        self._running = threading.Event()
        self._stopped: Optional[threading.Event] = None
        self._lifecycle = threading.RLock()
        self._socket: Optional[socket.socket] = None
        self._receive_thread: Optional[threading.Thread] = None
        self._handlers = WaitGroup()
        self._options = ServerOptions()

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @property
    def address(self) -> Optional[Any]:
        """Bound local address, or None when the server is idle."""
        sock = self._socket
        if sock is None:
            return None
        try:
            return sock.getsockname()
        except OSError:
            return None

    @property
    def in_flight(self) -> int:
        """Number of async handlers still running."""
        return self._handlers.count

    def start(
        self,
        network: str,
        address: str,
        recv_buffer_size: int,
        on_packet: PacketHandler,
        async_mode: bool = True,
        on_failure: Optional[FailureCallback] = None,
        options: Optional[ServerOptions] = None,
    ) -> None:
        """
        Bind the socket and receive packets in a background thread.

        A running server is stopped first.

        Args:
            network: One of udp, udp4, udp6
            address: Local address to bind (":4208", "0.0.0.0:4208")
            recv_buffer_size: Largest datagram accepted, in bytes
            on_packet: Called with each Packet
            async_mode: Run each handler in its own thread instead of inline
                        on the receive thread
            on_failure: Called with each receive error
            options: OS buffer sizes, concurrency cap and shutdown deadline

        Raises:
            InvalidArgumentError: If any argument is invalid
            ListenError: If the socket cannot be bound
        """
        with self._lifecycle:
            self.stop()

            if recv_buffer_size <= 0:
                raise InvalidArgumentError(
                    f"recv_buffer_size must be positive, got {recv_buffer_size}"
                )
            if on_packet is None:
                raise InvalidArgumentError("on_packet handler is required")

            options = options or ServerOptions()
            sock = bind_datagram(network, address)

            try:
                if options.read_buffer_size is not None:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, options.read_buffer_size)
                if options.write_buffer_size is not None:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, options.write_buffer_size)
            except OSError:
                sock.close()
                raise

            sock.settimeout(POLL_INTERVAL)

            slots = None
            if async_mode and options.max_concurrent is not None:
                slots = threading.BoundedSemaphore(options.max_concurrent)

            stopped = threading.Event()

            self._socket = sock
            self._options = options
            self._stopped = stopped
            self._running.set()

            self._receive_thread = threading.Thread(
                target=self._receive_loop,
                args=(sock, stopped, recv_buffer_size, on_packet, async_mode, on_failure, slots),
                name=f"udp-receive-{format_address(sock.getsockname())}",
                daemon=True,
            )
            self._receive_thread.start()

            mode = "async" if async_mode else "sync"
            self.logger.info(
                f"UDP server started on {network} {format_address(sock.getsockname())} ({mode})"
            )

    def stop(self) -> None:
        """
        Stop receiving and wait for in-flight handlers.

        Waits at most options.shutdown_wait seconds; handlers still running
        after that are detached and finish on their own. Idempotent.
        """
        with self._lifecycle:
            self._running.clear()

            stopped, self._stopped = self._stopped, None
            if stopped is not None:
                stopped.set()

            sock, self._socket = self._socket, None
            if sock is None:
                return

            sock.close()

            deadline = time.monotonic() + self._options.shutdown_wait

            thread, self._receive_thread = self._receive_thread, None
            if thread is not None and thread is not threading.current_thread():
                thread.join(max(0.0, deadline - time.monotonic()))

            if not self._handlers.wait(max(0.0, deadline - time.monotonic())):
                self.logger.warning(
                    f"UDP server stopped with {self._handlers.count} handlers still running"
                )
            else:
                self.logger.info("UDP server stopped")

    def _receive_loop(
        self,
        sock: socket.socket,
        stopped: threading.Event,
        recv_buffer_size: int,
        on_packet: PacketHandler,
        async_mode: bool,
        on_failure: Optional[FailureCallback],
        slots: Optional[threading.BoundedSemaphore],
    ) -> None:
        """Receive datagrams until this run's stop event is set."""
        endpoint = ReplyEndpoint(sock)

        while not stopped.is_set():
            try:
                data, address = sock.recvfrom(recv_buffer_size)
            except socket.timeout:
                continue
            except OSError as e:
                if stopped.is_set() or sock.fileno() == -1:
                    # Socket closed by stop()
                    break
                if on_failure is not None:
                    on_failure(e)
                else:
                    self.logger.warning(f"Receive error: {e}")
                continue

            packet = Packet(data=data, address=address, endpoint=endpoint)

            if not async_mode:
                self._dispatch(on_packet, packet)
                continue

            if slots is not None and not self._acquire_slot(slots, stopped):
                break

            self._handlers.add(1)
            try:
                threading.Thread(
                    target=self._run_handler,
                    args=(on_packet, packet, slots),
                    daemon=True,
                ).start()
            except RuntimeError as e:
                self._handlers.done()
                if slots is not None:
                    slots.release()
                if on_failure is not None:
                    on_failure(e)
                else:
                    self.logger.warning(f"Dropped packet from {format_address(address)}: {e}")

    def _acquire_slot(self, slots: threading.BoundedSemaphore, stopped: threading.Event) -> bool:
        """Wait for a free handler slot; give up once the server stops."""
        while not stopped.is_set():
            if slots.acquire(timeout=POLL_INTERVAL):
                return True
        return False

    def _run_handler(
        self,
        on_packet: PacketHandler,
        packet: Packet,
        slots: Optional[threading.BoundedSemaphore],
    ) -> None:
        try:
            self._dispatch(on_packet, packet)
        finally:
            if slots is not None:
                slots.release()
            self._handlers.done()

    def _dispatch(self, on_packet: PacketHandler, packet: Packet) -> None:
        try:
            on_packet(packet)
        except Exception as e:
            self.logger.error(
                f"Packet handler failed for {format_address(packet.address)}: "
                f"{type(e).__name__}: {e}",
                exc_info=True,
            )


def build_options(**kwargs: Any) -> ServerOptions:
    """Build ServerOptions, reporting bad values as InvalidArgumentError."""
    try:
        return ServerOptions(**kwargs)
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid UDP server options: {e}") from e
