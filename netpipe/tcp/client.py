"""
netpipe TCP Client Module
Byte-stream client for tcp, tcp4, tcp6 and unix networks.
"""

import logging
import socket
import threading
from typing import Any, Optional, Union

from ..common.address import check_network, dial as dial_socket, format_address
from ..common.constants import TCP_NETWORKS
from ..exceptions import AlreadyConnectedError, NotConnectedError

from .connection import Connection


def dial(network: str, address: str, timeout: Optional[float] = None) -> Connection:
    """
    Open a byte-stream connection.

    Args:
        network: One of tcp, tcp4, tcp6, unix
        address: host:port, :port, [v6]:port, or a socket path for unix
        timeout: Connect timeout in seconds (None = block)

    Raises:
        InvalidArgumentError: If network or address is malformed
        DialError: If the address cannot be reached
    """
    check_network(network, TCP_NETWORKS)
    return Connection(dial_socket(network, address, socket.SOCK_STREAM, timeout))


class Client:
    """
    TCP Client.

    Example usage:
        client = Client()
        client.connect("tcp", "127.0.0.1:4207")
        client.write("hello")
        print(client.read(1024))
        client.close()
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

        self._connection: Optional[Connection] = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        """Check if the client owns an open connection."""
        with self._lock:
            return self._connection is not None

    def connect(self, network: str, address: str, timeout: Optional[float] = None) -> None:
        """
        Connect to a remote address.

        Raises:
            AlreadyConnectedError: If a connection is already open
            InvalidArgumentError: If network or address is malformed
            DialError: If the address cannot be reached
        """
        with self._lock:
            if self._connection is not None:
                raise AlreadyConnectedError()

            self._connection = dial(network, address, timeout)

        self.logger.debug(f"Connected to {network} {address}")

    def _require_connection(self) -> Connection:
        with self._lock:
            if self._connection is None:
                raise NotConnectedError()
            return self._connection

    def read(self, max_bytes: int) -> str:
        """
        Read up to max_bytes bytes as text.

        Raises:
            NotConnectedError: If called before connect() or after close()
            EndOfStreamError: If the server closed the connection
        """
        return self._require_connection().read(max_bytes)

    def read_bytes(self, max_bytes: int) -> bytes:
        """Read up to max_bytes raw bytes."""
        return self._require_connection().read_bytes(max_bytes)

    def write(self, data: Union[str, bytes]) -> int:
        """
        Write all of data, returning the number of bytes written.

        Raises:
            NotConnectedError: If called before connect() or after close()
        """
        return self._require_connection().write(data)

    def close(self) -> None:
        """Close the connection. Idempotent."""
        with self._lock:
            connection, self._connection = self._connection, None

        if connection is not None:
            remote = connection.remote_address
            connection.close()
            self.logger.debug(f"Disconnected from {format_address(remote)}")

    @property
    def local_address(self) -> Optional[Any]:
        with self._lock:
            return self._connection.local_address if self._connection else None

    @property
    def remote_address(self) -> Optional[Any]:
        with self._lock:
            return self._connection.remote_address if self._connection else None

    def __enter__(self) -> 'Client':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
