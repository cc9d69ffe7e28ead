"""
pytest configuration and fixtures.
"""

import socket
import threading
from datetime import datetime, timedelta
from pathlib import Path

import pytest


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    """Empty directory for log files."""
    directory = tmp_path / "logs"
    directory.mkdir()
    return directory


class FakeClock:
    """Settable clock for the log writer."""

    def __init__(self, start: datetime):
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, moment: datetime) -> None:
        with self._lock:
            self._now = moment

    def advance(self, **kwargs) -> None:
        with self._lock:
            self._now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 15, 14, 32, 10, 123000))
