"""
netpipe TCP Connection Module
Byte-stream connection handle shared by the client and the server workers.
"""

import socket
import threading
from typing import Any, Optional, Union

from ..common.address import format_address
from ..exceptions import EndOfStreamError, InvalidArgumentError, NotConnectedError


ENCODING = "utf-8"
ERRORS = "surrogateescape"  # arbitrary bytes survive a read() -> write() round trip


class Connection:
    """
    One established byte-stream connection.

    The handle exclusively owns its socket. It is meant to be used by a single
    thread at a time; close() may be called from any thread and is idempotent.
    """

    def __init__(self, sock: socket.socket):
        self._socket: Optional[socket.socket] = sock
        self._lock = threading.Lock()

        self._local_address = sock.getsockname()
        try:
            self._remote_address = sock.getpeername()
        except OSError:
            # Peer already gone between accept() and here
            self._remote_address = None

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._socket is None

    @property
    def local_address(self) -> Optional[Any]:
        """Local socket address, or None once closed."""
        if self.closed:
            return None
        return self._local_address

    @property
    def remote_address(self) -> Optional[Any]:
        """Peer socket address, or None once closed."""
        if self.closed:
            return None
        return self._remote_address

    def _require_socket(self) -> socket.socket:
        with self._lock:
            if self._socket is None:
                raise NotConnectedError()
            return self._socket

    def read_bytes(self, max_bytes: int) -> bytes:
        """
        Read up to max_bytes bytes, blocking until at least one arrives.

        Raises:
            NotConnectedError: If the connection is closed
            EndOfStreamError: If the peer closed the stream
            OSError: On any other socket error
        """
        if max_bytes <= 0:
            raise InvalidArgumentError(f"max_bytes must be positive, got {max_bytes}")

        data = self._require_socket().recv(max_bytes)
        if not data:
            raise EndOfStreamError("Connection closed by peer")
        return data

    def read(self, max_bytes: int) -> str:
        """Read up to max_bytes bytes and return them as text."""
        return self.read_bytes(max_bytes).decode(ENCODING, ERRORS)

    def write(self, data: Union[str, bytes]) -> int:
        """
        Write all of data.

        Returns:
            Number of bytes written

        Raises:
            NotConnectedError: If the connection is closed
            OSError: If the socket write fails
        """
        if isinstance(data, str):
            data = data.encode(ENCODING, ERRORS)

        self._require_socket().sendall(data)
        return len(data)

    def close(self) -> None:
        """Close the connection. Closing a closed connection is a no-op."""
        with self._lock:
            sock, self._socket = self._socket, None

        if sock is None:
            return

        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Peer may have reset the connection already
            pass
        sock.close()

    def __enter__(self) -> 'Connection':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Connection({format_address(self._local_address)} -> "
            f"{format_address(self._remote_address)}, closed={self.closed})"
        )
