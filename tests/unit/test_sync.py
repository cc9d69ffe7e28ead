"""Unit tests for WaitGroup."""

import threading
import time

import pytest

from netpipe.common.sync import WaitGroup


class TestWaitGroup:
    """Test suite for WaitGroup."""

    def test_wait_on_zero_returns_immediately(self):
        assert WaitGroup().wait(timeout=0) is True

    def test_wait_times_out(self):
        group = WaitGroup()
        group.add(1)

        start = time.monotonic()
        assert group.wait(timeout=0.1) is False
        assert time.monotonic() - start >= 0.1
        assert group.count == 1

    def test_wait_releases_when_done(self):
        group = WaitGroup()
        group.add(3)

        def worker():
            time.sleep(0.05)
            group.done()

        threads = [threading.Thread(target=worker) for _ in range(3)]
        for thread in threads:
            thread.start()

        assert group.wait(timeout=5.0) is True
        assert group.count == 0
        for thread in threads:
            thread.join()

    def test_negative_counter(self):
        group = WaitGroup()
        with pytest.raises(ValueError):
            group.done()
        assert group.count == 0

    def test_repr(self):
        group = WaitGroup()
        group.add(2)
        assert repr(group) == "WaitGroup(count=2)"
