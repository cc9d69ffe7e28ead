"""
netpipe configuration.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .common.constants import (
    DEFAULT_LISTEN_BACKLOG,
    DEFAULT_POOL_SIZE,
    DEFAULT_QUEUE_CAPACITY,
    DEFAULT_RECV_BUFFER_SIZE,
    DEFAULT_SHUTDOWN_WAIT,
)

from .log.writer import WriterSettings, build_writer_settings
from .udp.server import ServerOptions, build_options


class Settings(BaseSettings):
    """Service settings, read from NETPIPE_* environment variables and .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="NETPIPE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # TCP server settings
    tcp_network: str = "tcp"
    tcp_address: str = "127.0.0.1:4207"
    tcp_pool_size: int = DEFAULT_POOL_SIZE
    tcp_max_workers: int = 0
    tcp_listen_backlog: int = DEFAULT_LISTEN_BACKLOG

    # UDP server settings
    udp_network: str = "udp"
    udp_address: str = "127.0.0.1:4208"
    udp_recv_buffer_size: int = DEFAULT_RECV_BUFFER_SIZE
    udp_async: bool = True
    udp_read_buffer_size: Optional[int] = None
    udp_write_buffer_size: Optional[int] = None
    udp_max_concurrent: Optional[int] = None
    udp_shutdown_wait: float = DEFAULT_SHUTDOWN_WAIT

    # Logging
    logging_level: str = "INFO"
    log_level: str = "INFO"
    log_output: str = "stdout"
    logs_dir: str = "logs"
    log_file_prefix: str = "netpipe"
    log_capture_caller: bool = False
    log_retention_days: int = 0
    log_queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    log_rotation_bytes: Optional[int] = None

    def udp_options(self) -> ServerOptions:
        return build_options(
            read_buffer_size=self.udp_read_buffer_size,
            write_buffer_size=self.udp_write_buffer_size,
            max_concurrent=self.udp_max_concurrent,
            shutdown_wait=self.udp_shutdown_wait,
        )

    def writer_settings(self) -> WriterSettings:
        return build_writer_settings(
            level=self.log_level,
            output=self.log_output,
            directory=self.logs_dir,
            file_prefix=self.log_file_prefix,
            capture_caller=self.log_capture_caller,
            retention_days=self.log_retention_days,
            queue_capacity=self.log_queue_capacity,
            rotation_bytes=self.log_rotation_bytes,
        )


# Global settings instance
settings = Settings()
