"""
netpipe Exceptions Module
Exception hierarchy for the socket servers, clients and the log pipeline.
"""


class NetPipeError(Exception):
    """Base exception for all netpipe errors."""
    pass


class InvalidArgumentError(NetPipeError, ValueError):
    """An API was called with an argument it cannot accept."""
    pass


class UnknownLevelError(InvalidArgumentError):
    """Severity name does not match any known level."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Unknown level name: {name!r} "
            f"(expected one of FATAL, ERROR, WARN, INFO, DEBUG, TRACE)"
        )


class NotConnectedError(NetPipeError):
    """Client operation attempted without an established connection."""

    def __init__(self, message: str = "please call connect first"):
        super().__init__(message)


class AlreadyConnectedError(NetPipeError):
    """Client already owns a connection; close it before connecting again."""

    def __init__(self, message: str = "already connected, call close first"):
        super().__init__(message)


class NotInitializedError(NetPipeError):
    """Log writer used before initialize() or after finalize()."""

    def __init__(self, message: str = "please call initialize first"):
        super().__init__(message)


class DialError(NetPipeError):
    """Outgoing connection could not be established."""
    pass


class ListenError(NetPipeError):
    """Listening socket could not be opened."""
    pass


class EndOfStreamError(NetPipeError):
    """Peer closed the stream before any byte was read."""
    pass
