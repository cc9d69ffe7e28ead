"""netpipe UDP Package."""

from .client import Client
from .server import Server, ServerOptions, Packet, ReplyEndpoint, build_options

__all__ = ['Client', 'Server', 'ServerOptions', 'Packet', 'ReplyEndpoint', 'build_options']
