"""
netpipe TCP Server Module
Concurrent TCP acceptor handing connections to per-connection worker threads.
"""

import logging
import os
import queue
import socket
import threading

from typing import Any, Callable, Optional

from ..common.address import format_address, listen_stream
from ..common.constants import DEFAULT_LISTEN_BACKLOG, POLL_INTERVAL
from ..common.sync import WaitGroup
from ..exceptions import InvalidArgumentError

from .connection import Connection


SuccessCallback = Callable[[Connection], None]
FailureCallback = Callable[[Exception], None]


class Server:
    """
    TCP Server.

    Accepted connections go through a bounded handoff queue to one worker
    thread each. The worker calls on_success with the connection and closes
    it when the callback returns or raises; exceptions are logged.

    Example usage:
        def echo(connection: Connection) -> None:
            connection.write(connection.read(1024))

        server = Server()
        server.start("tcp", "127.0.0.1:4207", 128, echo, on_failure=print)
        ...
        server.stop()
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        listen_backlog: int = DEFAULT_LISTEN_BACKLOG,
        max_workers: int = 0,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.listen_backlog = listen_backlog
        self.max_workers = max_workers  # 0 = unlimited

        self._running = threading.Event()
        self._lifecycle = threading.RLock()
        self._listener: Optional[socket.socket] = None
        self._channel: Optional[queue.Queue] = None
        self._unix_path: Optional[str] = None
        self._accept_thread: Optional[threading.Thread] = None
        self._jobs = WaitGroup()

    @property
    def running(self) -> bool:
        """Check if the server is accepting connections."""
        return self._running.is_set()

    @property
    def pending(self) -> int:
        """Accepted connections waiting in the handoff queue for a worker."""
        channel = self._channel
        return channel.qsize() if channel is not None else 0

    @property
    def address(self) -> Optional[Any]:
        """Bound listening address, or None when the server is idle."""
        listener = self._listener
        if listener is None:
            return None
        try:
            return listener.getsockname()
        except OSError:
            return None

    def start(
        self,
        network: str,
        address: str,
        pool_size: int,
        on_success: Optional[SuccessCallback] = None,
        on_failure: Optional[FailureCallback] = None,
    ) -> None:
        """
        Start listening and accept connections in a background thread.

        A running server is stopped first, so start() also restarts.

        Args:
            network: One of tcp, tcp4, tcp6, unix
            address: Listen address (":4207", "127.0.0.1:4207", socket path)
            pool_size: Capacity of the handoff queue between the accept loop
                       and the workers. Bounds accepted-but-undispatched
                       connections, not concurrent handlers.
            on_success: Called in a worker thread with each accepted connection
            on_failure: Called in the accept thread with each accept error

        Raises:
            InvalidArgumentError: If network, address or pool_size is invalid
            ListenError: If the listening socket cannot be opened
        """
        with self._lifecycle:
            self.stop()

            if not network:
                raise InvalidArgumentError("invalid network")
            if not address:
                raise InvalidArgumentError("invalid address")
            if pool_size <= 0:
                raise InvalidArgumentError(f"pool_size must be positive, got {pool_size}")

            listener = listen_stream(network, address, self.listen_backlog)
            listener.settimeout(POLL_INTERVAL)

            channel: queue.Queue = queue.Queue(maxsize=pool_size)
            slots = threading.BoundedSemaphore(self.max_workers) if self.max_workers > 0 else None

            self._listener = listener
            self._channel = channel
            self._unix_path = address if network == "unix" else None
            self._running.set()

            self._accept_thread = threading.Thread(
                target=self._accept_loop,
                args=(listener, channel, slots, on_success, on_failure),
                name=f"tcp-accept-{format_address(listener.getsockname())}",
                daemon=True,
            )
            self._accept_thread.start()

            self.logger.info(f"TCP server started on {network} {format_address(listener.getsockname())}")

    def stop(self) -> None:
        """
        Stop accepting, then wait for the accept loop and every worker.

        There is no deadline: a handler that never returns blocks stop().
        Must not be called from inside on_success or on_failure. Calling
        stop() on an idle server is a no-op.
        """
        with self._lifecycle:
            self._running.clear()

            listener, self._listener = self._listener, None
            if listener is not None:
                self._close_listener(listener)

            thread, self._accept_thread = self._accept_thread, None
            if thread is not None:
                thread.join()

            self._jobs.wait()

            channel, self._channel = self._channel, None
            if channel is not None:
                self._drain(channel)

            if listener is not None:
                self.logger.info("TCP server stopped")

    def _close_listener(self, listener: socket.socket) -> None:
        """Close the listening socket, which unblocks the accept loop."""
        try:
            listener.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Not every platform allows shutdown() on a listening socket
            pass

        try:
            listener.close()
        except OSError as e:
            self.logger.warning(f"Error closing listener: {e}")

        path, self._unix_path = self._unix_path, None
        if path and not path.startswith("\0"):
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                self.logger.warning(f"Error removing socket file {path}: {e}")

    def _drain(self, channel: queue.Queue) -> None:
        """Close connections left in the handoff queue with no worker."""
        while True:
            try:
                connection = channel.get_nowait()
            except queue.Empty:
                return
            self.logger.debug(f"Closing undispatched {connection!r}")
            connection.close()

    def _accept_loop(
        self,
        listener: socket.socket,
        channel: queue.Queue,
        slots: Optional[threading.BoundedSemaphore],
        on_success: Optional[SuccessCallback],
        on_failure: Optional[FailureCallback],
    ) -> None:
        """Accept incoming connections until the running flag is cleared."""
        while self._running.is_set():
            try:
                client_sock, address = listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running.is_set():
                    # Listener closed by stop()
                    break
                self._report_failure(on_failure, e)
                continue

            client_sock.settimeout(None)
            connection = Connection(client_sock)
            self.logger.debug(f"New connection from {format_address(address)}")

            # Blocks while the queue is full
            channel.put(connection)

            self._jobs.add(1)
            try:
                threading.Thread(
                    target=self._job,
                    args=(channel, slots, on_success),
                    daemon=True,
                ).start()
            except RuntimeError as e:
                # The queued connection is closed by stop()
                self._jobs.done()
                self._report_failure(on_failure, e)

    def _job(
        self,
        channel: queue.Queue,
        slots: Optional[threading.BoundedSemaphore],
        on_success: Optional[SuccessCallback],
    ) -> None:
        """Handle exactly one connection from the handoff queue."""
        # Waiting for a slot before popping keeps excess connections queued
        if slots is not None:
            slots.acquire()

        try:
            connection = channel.get()
            try:
                if on_success is not None:
                    on_success(connection)
            except Exception as e:
                self.logger.error(
                    f"Connection handler failed for {connection!r}: {type(e).__name__}: {e}",
                    exc_info=True,
                )
            finally:
                connection.close()
        finally:
            if slots is not None:
                slots.release()
            self._jobs.done()

    def _report_failure(self, on_failure: Optional[FailureCallback], error: Exception) -> None:
        if on_failure is not None:
            self.logger.debug(f"Accept error: {error}")
            on_failure(error)
        else:
            self.logger.warning(f"Accept error: {error}")
