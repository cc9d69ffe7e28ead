"""netpipe Common Package - shared constants, address handling and helpers."""

from .constants import (
    TCP_NETWORKS,
    UDP_NETWORKS,
    POLL_INTERVAL,
    DEFAULT_LISTEN_BACKLOG,
    DEFAULT_POOL_SIZE,
    DEFAULT_RECV_BUFFER_SIZE,
    DEFAULT_SHUTDOWN_WAIT,
    DEFAULT_QUEUE_CAPACITY,
)
from .address import (
    Endpoint,
    check_network,
    split_host_port,
    resolve,
    format_address,
    listen_stream,
    bind_datagram,
    dial,
)
from .sync import WaitGroup
from .utils import format_timestamp, date_stamp, parse_date_stamp, caller_location

__all__ = [
    # Constants
    'TCP_NETWORKS', 'UDP_NETWORKS', 'POLL_INTERVAL',
    'DEFAULT_LISTEN_BACKLOG', 'DEFAULT_POOL_SIZE', 'DEFAULT_RECV_BUFFER_SIZE',
    'DEFAULT_SHUTDOWN_WAIT', 'DEFAULT_QUEUE_CAPACITY',
    # Address
    'Endpoint', 'check_network', 'split_host_port', 'resolve', 'format_address',
    'listen_stream', 'bind_datagram', 'dial',
    # Sync
    'WaitGroup',
    # Utils
    'format_timestamp', 'date_stamp', 'parse_date_stamp', 'caller_location',
]
