"""
netpipe Constants Module
Default values shared by the servers, clients and the log pipeline.
"""

# Network selectors
TCP_NETWORKS = frozenset({"tcp", "tcp4", "tcp6", "unix"})
UDP_NETWORKS = frozenset({"udp", "udp4", "udp6"})

# Timeouts (in seconds)
POLL_INTERVAL = 0.2  # how often blocked accept/recvfrom re-check the running flag

# Server configuration
DEFAULT_LISTEN_BACKLOG = 128
DEFAULT_POOL_SIZE = 128
DEFAULT_RECV_BUFFER_SIZE = 2048
DEFAULT_SHUTDOWN_WAIT = 5.0

# Log pipeline
DEFAULT_QUEUE_CAPACITY = 1024
LOG_FILE_SUFFIX = ".log"
LEVEL_TOKEN_WIDTH = 5
