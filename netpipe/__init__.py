"""
netpipe - threaded TCP/UDP servers and clients with an asynchronous log writer.
"""

__version__ = "0.1.0"

from .exceptions import (
    NetPipeError,
    InvalidArgumentError,
    UnknownLevelError,
    NotConnectedError,
    AlreadyConnectedError,
    NotInitializedError,
    DialError,
    ListenError,
    EndOfStreamError,
)
from . import tcp, udp, log

__all__ = [
    '__version__',
    'NetPipeError', 'InvalidArgumentError', 'UnknownLevelError',
    'NotConnectedError', 'AlreadyConnectedError', 'NotInitializedError',
    'DialError', 'ListenError', 'EndOfStreamError',
    'tcp', 'udp', 'log',
]
