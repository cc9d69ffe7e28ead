"""netpipe TCP Package."""

from .connection import Connection
from .client import Client, dial
from .server import Server

__all__ = ['Connection', 'Client', 'dial', 'Server']
