"""
netpipe UDP Client Module
Connected datagram client for udp, udp4 and udp6 networks.
"""

import logging
import socket
import threading
from typing import Any, Optional, Tuple

from ..common.address import check_network, dial, resolve
from ..common.constants import UDP_NETWORKS
from ..exceptions import AlreadyConnectedError, DialError, InvalidArgumentError, NotConnectedError


class Client:
    """
    UDP Client.

    The socket is connected to one default peer: send() goes there and the
    kernel only delivers datagrams from that peer to receive().

    Example usage:
        client = Client()
        client.connect("udp4", "127.0.0.1:4208")
        client.send(b"ping")
        data, address = client.receive(1024, timeout=1.0)
        client.close()
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

        self._socket: Optional[socket.socket] = None
        self._network: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        with self._lock:
            return self._socket is not None

    def connect(self, network: str, address: str) -> None:
        """
        Create a UDP socket with a default peer.

        Raises:
            AlreadyConnectedError: If the client already owns a socket
            InvalidArgumentError: If network or address is malformed
            DialError: If the address cannot be resolved
        """
        check_network(network, UDP_NETWORKS)

        with self._lock:
            if self._socket is not None:
                raise AlreadyConnectedError()

            self._socket = dial(network, address, socket.SOCK_DGRAM)
            self._network = network

        self.logger.debug(f"UDP client connected to {network} {address}")

    def _require_socket(self) -> socket.socket:
        with self._lock:
            if self._socket is None:
                raise NotConnectedError()
            return self._socket

    def send(self, data: bytes) -> int:
        """
        Send one datagram to the connected peer.

        Returns:
            Number of bytes sent

        Raises:
            NotConnectedError: If called before connect() or after close()
        """
        return self._require_socket().send(data)

    def send_to(self, data: bytes, address: str) -> int:
        """
        Send one datagram to a peer other than the connected one.

        A connected socket cannot address other peers, so a temporary
        unconnected socket is used for each call.

        Raises:
            NotConnectedError: If called before connect() or after close()
            DialError: If the address cannot be resolved
        """
        self._require_socket()

        try:
            endpoint = resolve(self._network or "udp", address)
        except socket.gaierror as e:
            raise DialError(f"Failed to resolve {address!r}: {e}") from e

        with socket.socket(endpoint.family, socket.SOCK_DGRAM) as temp:
            return temp.sendto(data, endpoint.sockaddr)

    def receive(self, max_bytes: int, timeout: float = 0.0) -> Tuple[bytes, Any]:
        """
        Receive one datagram.

        Args:
            max_bytes: Largest datagram to accept; longer ones are truncated
            timeout: Seconds to wait; zero or negative waits forever

        Returns:
            Datagram bytes and the sender address

        Raises:
            NotConnectedError: If called before connect() or after close()
            TimeoutError: If the timeout elapses first
        """
        if max_bytes <= 0:
            raise InvalidArgumentError(f"max_bytes must be positive, got {max_bytes}")

        sock = self._require_socket()
        sock.settimeout(timeout if timeout > 0 else None)
        return sock.recvfrom(max_bytes)

    def set_read_buffer(self, size: int) -> None:
        """Set the OS receive buffer size (SO_RCVBUF)."""
        self._require_socket().setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, size)

    def set_write_buffer(self, size: int) -> None:
        """Set the OS send buffer size (SO_SNDBUF)."""
        self._require_socket().setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, size)

    def close(self) -> None:
        """Close the socket. Idempotent."""
        with self._lock:
            sock, self._socket = self._socket, None
            self._network = None

        if sock is not None:
            sock.close()

    @property
    def local_address(self) -> Optional[Any]:
        with self._lock:
            return self._socket.getsockname() if self._socket else None

    @property
    def remote_address(self) -> Optional[Any]:
        with self._lock:
            return self._socket.getpeername() if self._socket else None

    def __enter__(self) -> 'Client':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
