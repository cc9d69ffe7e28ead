"""
netpipe Address Module
Network selector validation, host:port parsing and socket creation helpers.
"""

import os
import socket
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple

from .constants import TCP_NETWORKS, UDP_NETWORKS
from ..exceptions import DialError, InvalidArgumentError, ListenError


_FAMILIES = {
    "tcp": socket.AF_UNSPEC,
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
    "udp": socket.AF_UNSPEC,
    "udp4": socket.AF_INET,
    "udp6": socket.AF_INET6,
}


@dataclass(frozen=True)
class Endpoint:
    """A resolved socket address ready for bind() or connect()."""

    family: int
    sockaddr: Any  # (host, port[, flowinfo, scope_id]) or a filesystem path


def check_network(network: str, allowed: Iterable[str]) -> None:
    """Reject empty or unsupported network selectors."""
    if not network:
        raise InvalidArgumentError("invalid network")

    allowed = frozenset(allowed)
    if network not in allowed:
        raise InvalidArgumentError(
            f"unsupported network {network!r} (expected one of {', '.join(sorted(allowed))})"
        )


def split_host_port(address: str) -> Tuple[str, str]:
    """
    Split "host:port", ":port" or "[v6]:port" into host and port strings.

    Raises:
        InvalidArgumentError: If the address is empty or malformed
    """
    if not address:
        raise InvalidArgumentError("invalid address")

    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise InvalidArgumentError(f"missing ']' in address {address!r}")
        host = address[1:end]
        rest = address[end + 1:]
        if not rest.startswith(":"):
            raise InvalidArgumentError(f"missing port in address {address!r}")
        port = rest[1:]
    else:
        host, sep, port = address.rpartition(":")
        if not sep:
            raise InvalidArgumentError(f"missing port in address {address!r}")
        if ":" in host:
            raise InvalidArgumentError(f"too many colons in address {address!r}")

    if not port:
        raise InvalidArgumentError(f"missing port in address {address!r}")

    return host, port


def parse_port(port: str, protocol: str) -> int:
    """Convert a decimal port or a service name ("http") to a port number."""
    if port.isdigit():
        number = int(port)
        if number > 65535:
            raise InvalidArgumentError(f"invalid port {port!r}")
        return number

    try:
        return socket.getservbyname(port, protocol)
    except OSError:
        raise InvalidArgumentError(f"unknown port {port!r}")


def resolve(network: str, address: str, passive: bool = False) -> Endpoint:
    """
    Resolve an address for the given network selector.

    Args:
        network: One of tcp, tcp4, tcp6, unix, udp, udp4, udp6
        address: host:port form, or a filesystem path for unix
        passive: Resolve for bind() rather than connect()

    Raises:
        InvalidArgumentError: If network or address is malformed
        socket.gaierror: If the host name cannot be resolved
    """
    check_network(network, TCP_NETWORKS | UDP_NETWORKS)

    if network == "unix":
        if not address:
            raise InvalidArgumentError("invalid address")
        if not hasattr(socket, "AF_UNIX"):
            raise InvalidArgumentError("unix sockets are not supported on this platform")
        return Endpoint(socket.AF_UNIX, address)

    host, port_text = split_host_port(address)
    protocol = "udp" if network.startswith("udp") else "tcp"
    port = parse_port(port_text, protocol)
    family = _FAMILIES[network]

    if not host:
        if family == socket.AF_INET6:
            host = "::" if passive else "::1"
        else:
            family = socket.AF_INET
            host = "0.0.0.0" if passive else "127.0.0.1"

    socktype = socket.SOCK_DGRAM if protocol == "udp" else socket.SOCK_STREAM
    flags = socket.AI_PASSIVE if passive else 0
    infos = socket.getaddrinfo(host, port, family, socktype, 0, flags)

    family, _, _, _, sockaddr = infos[0]
    return Endpoint(family, sockaddr)


def format_address(sockaddr: Any) -> str:
    """Render a socket address as host:port, [v6]:port or a path."""
    if sockaddr is None:
        return "-"
    if isinstance(sockaddr, (str, bytes)):
        return os.fsdecode(sockaddr) or "@"
    host, port = sockaddr[0], sockaddr[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _wildcard_both(network: str, address: str) -> bool:
    """":port" on tcp or udp means every IPv4 and IPv6 interface."""
    return network in ("tcp", "udp") and split_host_port(address)[0] == ""


def _bind_dual_stack(port: int, socktype: int) -> Optional[socket.socket]:
    """
    Bind an IPv6 wildcard socket that also accepts IPv4 peers.

    Returns None where the host has no usable dual-stack support, so the
    caller can bind the IPv4 wildcard instead.
    """
    if not socket.has_ipv6 or not hasattr(socket, "IPV6_V6ONLY"):
        return None

    try:
        sock = socket.socket(socket.AF_INET6, socktype)
    except OSError:
        return None

    try:
        sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        if socktype == socket.SOCK_STREAM:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("::", port))
    except OSError:
        sock.close()
        return None

    return sock


def listen_stream(network: str, address: str, backlog: int) -> socket.socket:
    """
    Open a listening stream socket.

    Raises:
        InvalidArgumentError: If network or address is malformed
        ListenError: If the socket cannot be bound or put into listening state
    """
    check_network(network, TCP_NETWORKS)

    try:
        endpoint = resolve(network, address, passive=True)
    except socket.gaierror as e:
        raise ListenError(f"Failed to resolve {address!r}: {e}") from e

    if _wildcard_both(network, address):
        sock = _bind_dual_stack(endpoint.sockaddr[1], socket.SOCK_STREAM)
        if sock is not None:
            try:
                sock.listen(backlog)
            except OSError as e:
                sock.close()
                raise ListenError(f"Failed to listen on {network} {address}: {e}") from e
            return sock

    sock = socket.socket(endpoint.family, socket.SOCK_STREAM)
    try:
        if endpoint.family != getattr(socket, "AF_UNIX", None):
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(endpoint.sockaddr)
        sock.listen(backlog)
    except OSError as e:
        sock.close()
        raise ListenError(f"Failed to listen on {network} {address}: {e}") from e

    return sock


def bind_datagram(network: str, address: str) -> socket.socket:
    """
    Open a bound datagram socket.

    Raises:
        InvalidArgumentError: If network or address is malformed
        ListenError: If the socket cannot be bound
    """
    check_network(network, UDP_NETWORKS)

    try:
        endpoint = resolve(network, address, passive=True)
    except socket.gaierror as e:
        raise ListenError(f"Failed to resolve {address!r}: {e}") from e

    if _wildcard_both(network, address):
        sock = _bind_dual_stack(endpoint.sockaddr[1], socket.SOCK_DGRAM)
        if sock is not None:
            return sock

    sock = socket.socket(endpoint.family, socket.SOCK_DGRAM)
    try:
        sock.bind(endpoint.sockaddr)
    except OSError as e:
        sock.close()
        raise ListenError(f"Failed to bind {network} {address}: {e}") from e

    return sock


def dial(network: str, address: str, socktype: int, timeout: Optional[float] = None) -> socket.socket:
    """
    Open a connected socket of the given type.

    Raises:
        InvalidArgumentError: If network or address is malformed
        DialError: If the peer cannot be resolved or reached
    """
    try:
        endpoint = resolve(network, address)
    except socket.gaierror as e:
        raise DialError(f"Failed to resolve {address!r}: {e}") from e

    sock = socket.socket(endpoint.family, socktype)
    try:
        sock.settimeout(timeout)
        sock.connect(endpoint.sockaddr)
        sock.settimeout(None)
    except OSError as e:
        sock.close()
        raise DialError(f"Failed to connect to {network} {address}: {e}") from e

    return sock
